"""Shared plumbing for CLI commands: repo discovery, settings, error mapping."""

import logging
import os
from collections.abc import Callable
from functools import wraps
from pathlib import Path
from typing import Any, TypeVar

import click

from stackpr.cli.output import error, user_output, warn
from stackpr.core.config import (
    DEFAULT_IGNORE_TAG,
    FALLBACK_ROOT_BASE,
    ConflictStrategy,
    StackSettings,
    default_prefix,
    normalize_prefix,
)
from stackpr.core.context import StackContext
from stackpr.core.errors import CleanupError, StackError
from stackpr.stack.conflict import ConflictPolicy, halt_instructions, policy_for
from stackpr.stack.types import RebuildResult

logger = logging.getLogger(__name__)

F = TypeVar("F", bound=Callable[..., Any])


def configure_logging() -> None:
    """Enable debug logging if the STACKPR_DEBUG environment variable is set."""
    if os.getenv("STACKPR_DEBUG"):
        logging.basicConfig(level=logging.DEBUG, format="[DEBUG %(name)s:%(lineno)d] %(message)s")


def discover_repo_root(ctx: StackContext) -> Path:
    repo_root = ctx.git.get_repo_root(ctx.cwd)
    if repo_root is None:
        msg = f"Not a git repository: {ctx.cwd}"
        raise StackError(msg)
    return repo_root


def resolve_settings(ctx: StackContext, repo_root: Path) -> StackSettings:
    """Build the settings bundle: CLI override, then config file, then detection.

    The root base falls back to origin's default branch and finally to
    origin/main.

    Raises:
        StackError: If a config file is invalid
    """
    try:
        file_config = ctx.config_store.load(repo_root)
    except ValueError as e:
        raise StackError(str(e)) from e

    root_base = ctx.base_override or file_config.base
    if root_base is None:
        root_base = ctx.git.get_remote_default_branch(repo_root) or FALLBACK_ROOT_BASE
        logger.debug("Detected root base %s", root_base)

    prefix = ctx.prefix_override or file_config.prefix or default_prefix()
    return StackSettings(
        repo_root=repo_root,
        root_base=root_base,
        prefix=normalize_prefix(prefix),
        ignore_tag=file_config.ignore_tag or DEFAULT_IGNORE_TAG,
        land_mode=file_config.land or "flatten",
        description_mode=file_config.pr_description_mode or "overwrite",
        conflict_strategy=file_config.restack_conflict or "rollback",
        list_order=file_config.list_order or "recent_on_bottom",
    )


def load_command_settings(ctx: StackContext) -> tuple[Path, StackSettings]:
    repo_root = discover_repo_root(ctx)
    return repo_root, resolve_settings(ctx, repo_root)


def resolve_policy(settings: StackSettings, on_conflict: str | None) -> ConflictPolicy:
    strategy: ConflictStrategy = settings.conflict_strategy
    if on_conflict == "halt":
        strategy = "halt"
    elif on_conflict == "rollback":
        strategy = "rollback"
    return policy_for(strategy)


def on_conflict_option(func: F) -> F:
    """Add the --on-conflict option shared by every history-rewriting command."""
    return click.option(
        "--on-conflict",
        type=click.Choice(["rollback", "halt"]),
        default=None,
        help="What to do when a commit does not replay cleanly (default: from config).",
    )(func)


def handle_stack_errors(func: F) -> F:
    """Map StackError and gateway failures to a red `Error:` line and exit 1.

    CleanupError is only a warning and does not change the outcome.
    """

    @wraps(func)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        try:
            return func(*args, **kwargs)
        except CleanupError as e:
            warn(str(e))
            return None
        except StackError as e:
            error(str(e))
            raise SystemExit(1) from e
        except RuntimeError as e:
            # Gateway failures outside the core's wrapped steps
            error(str(e))
            raise SystemExit(1) from e

    return wrapper  # type: ignore[return-value]


def report_rebuild(result: RebuildResult, *, done_message: str) -> None:
    """Print the outcome of a rebuild. Exits 1 unless it completed."""
    for message in result.warnings:
        warn(message)

    if result.backup_branch is not None:
        logger.debug("Backup branch: %s", result.backup_branch)

    if result.status == "completed":
        tip = result.new_tip[:8] if result.new_tip else "?"
        user_output(click.style("✓ ", fg="green") + f"{done_message} (new tip {tip})")
        return

    if result.conflict is not None:
        error(str(result.conflict))
    if result.status == "halted" and result.workspace is not None:
        for line in halt_instructions(result.workspace):
            user_output(line)
    else:
        user_output("Rolled back; your branch is unchanged.")
    raise SystemExit(1)
