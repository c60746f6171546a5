"""Workflows command: list available presets."""

import click

from cli_task_chain.exceptions import ConfigurationError
from cli_task_chain.services.workflow_service import list_available_workflows, load_workflow


@click.command()
def workflows():
    """List available workflow presets."""
    names = list_available_workflows()
    if not names:
        click.echo("No workflow presets found")
        return

    for name in names:
        try:
            description = load_workflow(name).description
        except ConfigurationError as e:
            description = f"(invalid: {e})"
        click.echo(f"  {name}:{' ' * max(1, 10 - len(name))}{description}")
