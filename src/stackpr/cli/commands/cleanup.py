import click

from stackpr.cli.core import handle_stack_errors, load_command_settings
from stackpr.core.context import StackContext
from stackpr.stack.cleanup import cleanup_remote_branches


@click.command("cleanup")
@click.pass_obj
@handle_stack_errors
def cleanup_cmd(ctx: StackContext) -> None:
    """Delete remote {prefix}* branches that have no open PR."""
    repo_root, settings = load_command_settings(ctx)
    cleanup_remote_branches(ctx, repo_root, settings)
