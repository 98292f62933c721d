import click

from stackpr.cli.core import discover_repo_root, handle_stack_errors
from stackpr.cli.output import user_output, warn
from stackpr.core.context import StackContext
from stackpr.stack.rebuild import abort_rebuild


@click.command("abort")
@click.pass_obj
@handle_stack_errors
def abort_cmd(ctx: StackContext) -> None:
    """Discard the operation halted on this branch. The branch is untouched."""
    repo_root = discover_repo_root(ctx)
    result = abort_rebuild(ctx, repo_root)
    for message in result.warnings:
        warn(message)
    user_output(click.style("✓ ", fg="green") + "Aborted; your branch is unchanged.")
