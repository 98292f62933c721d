import click

from stackpr.cli.commands.abort import abort_cmd
from stackpr.cli.commands.cleanup import cleanup_cmd
from stackpr.cli.commands.fix_tail import fix_tail_cmd
from stackpr.cli.commands.land import land_cmd
from stackpr.cli.commands.list_cmd import list_cmd
from stackpr.cli.commands.move import move_cmd
from stackpr.cli.commands.prep import prep_cmd
from stackpr.cli.commands.relink import relink_cmd
from stackpr.cli.commands.restack import restack_cmd
from stackpr.cli.commands.resume import resume_cmd
from stackpr.cli.commands.update import update_cmd
from stackpr.cli.core import configure_logging
from stackpr.core.context import create_context

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])  # terse help flags


@click.group(context_settings=CONTEXT_SETTINGS)
@click.version_option(package_name="stackpr")
@click.option(
    "--dry-run",
    is_flag=True,
    help="Print every branch, push and PR change instead of performing it.",
)
@click.option("--base", default=None, help="Root base ref, e.g. origin/main.")
@click.option("--prefix", default=None, help="Branch prefix for stack branches.")
@click.pass_context
def cli(ctx: click.Context, dry_run: bool, base: str | None, prefix: str | None) -> None:
    """Manage a stack of dependent GitHub PRs from one local branch.

    Commits are grouped into PRs by pr:<tag> markers in their messages.
    """
    configure_logging()
    # Only create context if not already provided (e.g., by tests)
    if ctx.obj is None:
        ctx.obj = create_context(dry_run=dry_run)
    elif dry_run:
        ctx.obj = ctx.obj.with_dry_run()
    ctx.obj = ctx.obj.with_overrides(base=base, prefix=prefix)


cli.add_command(update_cmd)
cli.add_command(restack_cmd)
cli.add_command(move_cmd)
cli.add_command(fix_tail_cmd)
cli.add_command(prep_cmd)
cli.add_command(land_cmd)
cli.add_command(relink_cmd)
cli.add_command(cleanup_cmd)
cli.add_command(list_cmd)
cli.add_command(resume_cmd)
cli.add_command(abort_cmd)


def main() -> None:
    """CLI entry point used by the `stackpr` console script."""
    cli()
