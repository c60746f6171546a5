"""Entry point for the tchain command line."""

import click

from cli_task_chain.cli.commands.monitor import monitor
from cli_task_chain.cli.commands.run import run
from cli_task_chain.cli.commands.workflows import workflows
from cli_task_chain.utils.logging import setup_logging


@click.group()
@click.option("--log-level", help="Log level (default: TCHAIN_LOG_LEVEL or INFO)")
def cli(log_level):
    """tchain - drive an interactive CLI agent through a chain of task stages."""
    setup_logging(log_level)


cli.add_command(run)
cli.add_command(monitor)
cli.add_command(workflows)


if __name__ == "__main__":
    cli()
