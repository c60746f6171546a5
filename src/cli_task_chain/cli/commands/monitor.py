"""Monitor command: run a saved task config against an agent session."""

import os

import click

from cli_task_chain.channels.tmux import TmuxChannel
from cli_task_chain.cli.reporting import run_chain
from cli_task_chain.constants import DEFAULT_PROVIDER, PROVIDERS
from cli_task_chain.exceptions import TaskChainError
from cli_task_chain.providers.manager import get_provider
from cli_task_chain.services.chain_runner import ChainRunner
from cli_task_chain.services.workflow_service import load_task_config


@click.command()
@click.argument("config_file", type=click.Path(dir_okay=False))
@click.argument("instance_id", required=False)
@click.option(
    "--provider", default=DEFAULT_PROVIDER, help=f"Provider to use (default: {DEFAULT_PROVIDER})"
)
def monitor(config_file, instance_id, provider):
    """Send a task config's initial prompt and drive its chain.

    INSTANCE_ID defaults to the config's instanceId, or the latest instance.
    """
    if provider not in PROVIDERS:
        raise click.ClickException(
            f"Invalid provider '{provider}'. Available providers: {', '.join(PROVIDERS)}"
        )

    try:
        config = load_task_config(config_file)
        runner = ChainRunner(
            config,
            channel=TmuxChannel(get_provider(provider)),
            working_dir=os.path.realpath(os.getcwd()),
        )
        click.echo(f"Task: {config.task_description!r} ({len(config.chains)} stages)")
        exit_code = run_chain(runner, instance_id=instance_id)
    except TaskChainError as e:
        raise click.ClickException(str(e))
    raise SystemExit(exit_code)
