import click

from stackpr.cli.core import handle_stack_errors, load_command_settings
from stackpr.cli.output import machine_output, user_output
from stackpr.core.context import StackContext
from stackpr.stack.listing import PR_LIST_HEADER, list_commit_rows, list_pr_rows


@click.command("list")
@click.argument("what", type=click.Choice(["pr", "commit"]), default="pr")
@click.pass_obj
@handle_stack_errors
def list_cmd(ctx: StackContext, what: str) -> None:
    """List the stack by PR (default) or by commit.

    Local numbers count from the bottom of the stack regardless of the
    configured display order.
    """
    repo_root, settings = load_command_settings(ctx)
    if what == "commit":
        rows = list_commit_rows(ctx, repo_root, settings)
        if not rows:
            user_output("No commits above the root base.")
            return
        for commit_row in rows:
            machine_output(commit_row.render())
        return

    pr_rows = list_pr_rows(ctx, repo_root, settings)
    if not pr_rows:
        user_output("No groups discovered; nothing to list.")
        return
    for line in PR_LIST_HEADER:
        machine_output(line)
    for pr_row in pr_rows:
        machine_output(pr_row.render())
