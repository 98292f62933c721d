import click

from stackpr.cli.core import (
    handle_stack_errors,
    load_command_settings,
    on_conflict_option,
    report_rebuild,
    resolve_policy,
)
from stackpr.cli.output import machine_output
from stackpr.core.context import StackContext
from stackpr.stack.prep import prep


@click.command("prep")
@click.option("--until", type=int, default=None, help="Prep the bottom N groups (0 = all).")
@click.option("--exact", type=int, default=None, help="Prep only group I.")
@on_conflict_option
@click.pass_obj
@handle_stack_errors
def prep_cmd(
    ctx: StackContext, until: int | None, exact: int | None, on_conflict: str | None
) -> None:
    """Squash each selected group into one commit, then publish it.

    Needed before `stackpr land per-pr`, which requires one commit per PR.
    """
    repo_root, settings = load_command_settings(ctx)
    outcome = prep(
        ctx,
        repo_root,
        settings,
        until=until,
        exact=exact,
        policy=resolve_policy(settings, on_conflict),
    )
    if outcome.rebuild is None:
        return
    report_rebuild(outcome.rebuild, done_message="Squashed selected groups")
    if outcome.publish is not None:
        for pr in outcome.publish.prs:
            machine_output(f"#{pr.number} {pr.title} {pr.url}".rstrip())
