"""Output utilities for user-facing messages.

user_output writes to stderr so that stdout stays free for machine-readable
data (PR URLs, list rows).
"""

from typing import Any

import click


def user_output(message: Any = "", nl: bool = True) -> None:
    """Emit a diagnostic/progress message to stderr."""
    click.echo(message, nl=nl, err=True)


def machine_output(message: Any = "", nl: bool = True) -> None:
    """Emit a result to stdout."""
    click.echo(message, nl=nl)


def warn(message: str) -> None:
    """Emit a yellow warning line."""
    user_output(click.style("Warning: ", fg="yellow") + message)


def error(message: str) -> None:
    """Emit a red error line."""
    user_output(click.style("Error: ", fg="red") + message)
