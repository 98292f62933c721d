import click

from stackpr.cli.core import handle_stack_errors, load_command_settings
from stackpr.cli.output import machine_output, user_output
from stackpr.core.context import StackContext
from stackpr.core.errors import ValidationError
from stackpr.stack.model import Extent
from stackpr.stack.publish import publish_stack


@click.command("update")
@click.option("--until", type=int, default=None, help="Publish only the bottom N groups.")
@click.option("--commits", type=int, default=None, help="Publish only the bottom N commits.")
@click.option("--no-pr", is_flag=True, help="Push branches without creating or editing PRs.")
@click.pass_obj
@handle_stack_errors
def update_cmd(ctx: StackContext, until: int | None, commits: int | None, no_pr: bool) -> None:
    """Push one branch per group and create or refresh its PR.

    Branches are named {prefix}{tag}. Each PR is based on the branch of the
    group below it; the bottom PR is based on the root base.
    """
    if until is not None and commits is not None:
        msg = "--until and --commits are mutually exclusive"
        raise ValidationError(msg)

    if commits is not None:
        extent = Extent.by_commits(commits)
    elif until is not None:
        extent = Extent.by_pr(until)
    else:
        extent = Extent.whole()

    repo_root, settings = load_command_settings(ctx)
    result = publish_stack(ctx, repo_root, settings, extent, no_pr=no_pr)

    skipped = sum(1 for push in result.pushes if push.kind == "skip")
    if skipped:
        user_output(f"{skipped} branch(es) already up to date")
    for pr in result.prs:
        machine_output(f"#{pr.number} {pr.title} {pr.url}".rstrip())
