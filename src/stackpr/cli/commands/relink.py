import click

from stackpr.cli.core import handle_stack_errors, load_command_settings
from stackpr.cli.output import user_output
from stackpr.core.context import StackContext
from stackpr.stack.relink import relink


@click.command("relink")
@click.pass_obj
@handle_stack_errors
def relink_cmd(ctx: StackContext) -> None:
    """Fix PR bases so they follow the local stack order."""
    repo_root, settings = load_command_settings(ctx)
    result = relink(ctx, repo_root, settings)
    if not result.corrections:
        user_output("All PR bases already match the stack")
        return
    user_output(
        click.style("✓ ", fg="green") + f"Updated {len(result.corrections)} PR base(s)"
    )
