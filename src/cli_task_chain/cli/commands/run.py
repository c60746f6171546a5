"""Run command: push a task through a workflow with a single command."""

import os

import click

from cli_task_chain.channels.tmux import TmuxChannel
from cli_task_chain.constants import DEFAULT_PRESET, DEFAULT_PROVIDER, PROVIDERS
from cli_task_chain.cli.reporting import run_chain
from cli_task_chain.exceptions import TaskChainError
from cli_task_chain.providers.manager import get_provider
from cli_task_chain.services.chain_runner import ChainRunner, resolve_named_session
from cli_task_chain.services.workflow_service import (
    build_custom_stages_config,
    build_workflow_from_preset,
    list_available_workflows,
    save_task_config,
)
from cli_task_chain.utils.terminal import session_name_to_instance_id


@click.command()
@click.argument("task")
@click.option("--instance", "-i", "instance_id", help="Agent instance id (default: latest)")
@click.option("--session", "-t", "session_name", help="Use an existing tmux session")
@click.option("--name", "-n", "custom_name", help="Create or reuse a session with this exact name")
@click.option("--preset", "-p", default=DEFAULT_PRESET, help="Workflow preset to use")
@click.option("--stages", "-s", help="Custom stages (comma-separated), overrides --preset")
@click.option(
    "--provider", default=DEFAULT_PROVIDER, help=f"Provider to use (default: {DEFAULT_PROVIDER})"
)
@click.option(
    "--save-config",
    type=click.Path(dir_okay=False),
    help="Write the generated task config to this file",
)
def run(task, instance_id, session_name, custom_name, preset, stages, provider, save_config):
    """Run TASK through a sequence of stages."""
    if provider not in PROVIDERS:
        raise click.ClickException(
            f"Invalid provider '{provider}'. Available providers: {', '.join(PROVIDERS)}"
        )

    custom_stages = [stage for stage in stages.split(",") if stage.strip()] if stages else None
    if not custom_stages:
        available = list_available_workflows()
        if preset not in available:
            raise click.ClickException(
                f"Invalid preset '{preset}'. Available presets: {', '.join(available)}. "
                "Or use --stages to specify custom stages"
            )

    working_directory = os.path.realpath(os.getcwd())
    channel = TmuxChannel(get_provider(provider))

    click.echo(f"Task: {task!r}")
    click.echo(
        f"Workflow: {'custom (' + ' -> '.join(custom_stages) + ')' if custom_stages else preset}"
    )

    try:
        if custom_name:
            instance_id = resolve_named_session(channel, custom_name, working_directory)
        elif session_name and not instance_id:
            instance_id = session_name_to_instance_id(session_name)

        if custom_stages:
            config = build_custom_stages_config(task, custom_stages, instance_id)
        else:
            config = build_workflow_from_preset(preset, task, instance_id)

        if save_config:
            save_task_config(config, save_config)
            click.echo(f"Task config written to: {save_config}")

        runner = ChainRunner(config, channel=channel, working_dir=working_directory)
    except TaskChainError as e:
        raise click.ClickException(str(e))

    try:
        exit_code = run_chain(runner)
    except TaskChainError as e:
        raise click.ClickException(str(e))
    raise SystemExit(exit_code)
