import click

from stackpr.cli.core import (
    handle_stack_errors,
    load_command_settings,
    on_conflict_option,
    report_rebuild,
    resolve_policy,
)
from stackpr.cli.output import user_output
from stackpr.core.context import StackContext
from stackpr.stack.restack import restack


@click.command("restack")
@click.option(
    "--after",
    default="0",
    show_default=True,
    help="Drop the bottom N groups (already landed): a number, bottom, or top/last/all.",
)
@click.option("--safe", is_flag=True, help="Save HEAD to a backup branch first.")
@on_conflict_option
@click.pass_obj
@handle_stack_errors
def restack_cmd(ctx: StackContext, after: str, safe: bool, on_conflict: str | None) -> None:
    """Rebuild the stack onto the latest root base.

    Fetches origin, drops the bottom --after groups and replays the rest,
    ignore blocks included, onto the root base.
    """
    repo_root, settings = load_command_settings(ctx)
    outcome = restack(
        ctx,
        repo_root,
        settings,
        after,
        safe=safe,
        policy=resolve_policy(settings, on_conflict),
    )
    if outcome.result is None:
        user_output("No groups found; nothing to restack.")
        return

    if outcome.upstream is not None:
        user_output(f"Upstream of remaining groups: {outcome.upstream[:8]}")
    report_rebuild(
        outcome.result,
        done_message=f"Restacked {outcome.remaining} group(s) onto {settings.root_base}",
    )
