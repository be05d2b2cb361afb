import logging

import click

from ai_task_manager.cli.commands.install import install
from ai_task_manager.cli.commands.repair import repair
from ai_task_manager.cli.commands.status import status
from ai_task_manager.cli.commands.uninstall import uninstall
from ai_task_manager.cli.commands.verify import verify
from ai_task_manager.cli.output import user_output
from ai_task_manager.error_boundary import cli_error_boundary
from ai_task_manager.version import __version__

CONTEXT_SETTINGS = dict(help_option_names=["-h", "--help"])


@click.group(invoke_without_command=True, context_settings=CONTEXT_SETTINGS)
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Log installer internals to stderr")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """Install and manage the AI task manager in a project."""
    ctx.ensure_object(dict)
    ctx.obj["debug"] = debug
    if debug:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    if ctx.invoked_subcommand is None:
        user_output(ctx.get_help())


cli.add_command(install)
cli.add_command(status)
cli.add_command(verify)
cli.add_command(repair)
cli.add_command(uninstall)


def main() -> None:
    """Entry point with error boundary."""
    cli_error_boundary(cli)()


if __name__ == "__main__":
    main()
