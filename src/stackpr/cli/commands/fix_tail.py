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
from stackpr.stack.reorder import fix_tail


@click.command("fix-tail")
@click.argument("target", type=int)
@click.option("--tail", type=int, required=True, help="Number of top commits to move.")
@click.option("--safe", is_flag=True, help="Save HEAD to a backup branch first.")
@on_conflict_option
@click.pass_obj
@handle_stack_errors
def fix_tail_cmd(
    ctx: StackContext, target: int, tail: int, safe: bool, on_conflict: str | None
) -> None:
    """Move the top --tail commits to the end of group TARGET.

    For follow-up commits made at the top of the stack that belong to a
    lower PR. Tail commits must not carry pr:<tag> markers.
    """
    repo_root, settings = load_command_settings(ctx)
    outcome = fix_tail(
        ctx,
        repo_root,
        settings,
        target,
        tail,
        safe=safe,
        policy=resolve_policy(settings, on_conflict),
    )
    user_output(outcome.plan_text)
    if outcome.result is None:
        return
    report_rebuild(outcome.result, done_message=f"Moved {tail} commit(s) into group {target}")
