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
from stackpr.stack.reorder import move_groups


@click.command("move")
@click.argument("range_spec", metavar="RANGE")
@click.option("--after", required=True, help="Group to move after: a number, bottom, or top.")
@click.option("--safe", is_flag=True, help="Save HEAD to a backup branch first.")
@on_conflict_option
@click.pass_obj
@handle_stack_errors
def move_cmd(
    ctx: StackContext, range_spec: str, after: str, safe: bool, on_conflict: str | None
) -> None:
    """Move group A (or groups A..B) to sit after group --after.

    \b
    Examples:
        stackpr move 2 --after top
        stackpr move 2..3 --after 4
    """
    repo_root, settings = load_command_settings(ctx)
    outcome = move_groups(
        ctx,
        repo_root,
        settings,
        range_spec,
        after,
        safe=safe,
        policy=resolve_policy(settings, on_conflict),
    )
    user_output(outcome.plan_text)
    if outcome.result is None:
        return
    report_rebuild(outcome.result, done_message="Reordered stack")
