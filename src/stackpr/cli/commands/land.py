import click
from rich.console import Console

from stackpr.cli.core import (
    handle_stack_errors,
    load_command_settings,
    on_conflict_option,
    report_rebuild,
    resolve_policy,
)
from stackpr.core.config import LandMode
from stackpr.core.context import StackContext
from stackpr.stack.landing import LandingIncompleteError, format_landing_report, land


@click.command("land")
@click.argument("mode", type=click.Choice(["flatten", "per-pr"]), required=False)
@click.option("--until", type=int, default=0, help="Land the bottom N groups (0 = all).")
@click.option("--unsafe", is_flag=True, help="Skip the CI and review gate (flatten only).")
@click.option("--no-restack", is_flag=True, help="Do not restack the remaining groups.")
@on_conflict_option
@click.pass_obj
@handle_stack_errors
def land_cmd(
    ctx: StackContext,
    mode: LandMode | None,
    until: int,
    unsafe: bool,
    no_restack: bool,
    on_conflict: str | None,
) -> None:
    """Land the bottom groups of the stack.

    \b
    flatten: squash-merge the top targeted PR with its base set to the root
             base; close the PRs below it.
    per-pr:  rebase-merge instead; every targeted PR must hold exactly one
             commit (see `stackpr prep`).
    """
    repo_root, settings = load_command_settings(ctx)
    console = Console(stderr=True, force_terminal=True)
    try:
        outcome = land(
            ctx,
            repo_root,
            settings,
            mode or settings.land_mode,
            until=until,
            unsafe=unsafe,
            no_restack=no_restack,
            policy=resolve_policy(settings, on_conflict),
        )
    except LandingIncompleteError as e:
        console.print(format_landing_report(e.report))
        raise

    console.print(format_landing_report(outcome.report))
    if outcome.restack is not None and outcome.restack.result is not None:
        report_rebuild(
            outcome.restack.result,
            done_message=f"Restacked {outcome.restack.remaining} remaining group(s)",
        )
