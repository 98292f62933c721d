import click

from stackpr.cli.core import (
    discover_repo_root,
    handle_stack_errors,
    on_conflict_option,
    report_rebuild,
    resolve_policy,
    resolve_settings,
)
from stackpr.core.context import StackContext
from stackpr.stack.rebuild import resume_rebuild


@click.command("resume")
@on_conflict_option
@click.pass_obj
@handle_stack_errors
def resume_cmd(ctx: StackContext, on_conflict: str | None) -> None:
    """Continue the operation halted on a conflict in this branch."""
    repo_root = discover_repo_root(ctx)
    settings = resolve_settings(ctx, repo_root)
    result = resume_rebuild(ctx, repo_root, resolve_policy(settings, on_conflict or "halt"))
    report_rebuild(result, done_message="Resumed and finished")
