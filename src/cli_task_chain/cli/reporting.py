"""Console reporting shared by the chain-running commands."""

import signal
from typing import Optional

import click

from cli_task_chain.exceptions import DispatchFailure
from cli_task_chain.models.monitor import ChainEvent, ChainEventType, MonitorState
from cli_task_chain.services.chain_runner import ChainRunner


def report_event(event: ChainEvent) -> None:
    """Print one lifecycle event."""
    data = event.data
    if event.type == ChainEventType.STARTED:
        click.echo("Chain monitor active and watching for keywords")
    elif event.type == ChainEventType.STAGE_EXECUTED:
        click.echo(f"Stage {data['stageIndex'] + 1} triggered by: {data['keyword']}")
    elif event.type == ChainEventType.CHAIN_COMPLETE:
        click.echo(f"Task chain completed: all {data['totalStages']} stages executed")
    elif event.type == ChainEventType.CHAIN_FAILED:
        click.echo(f"Chain failed at keyword: {data['keyword']}", err=True)
    elif event.type == ChainEventType.TIMED_OUT:
        click.echo(
            f"Timeout: completed {data['completedStages']} out of {data['totalStages']} stages",
            err=True,
        )
    elif event.type == ChainEventType.STOPPED:
        click.echo("Chain monitor stopped")
    elif event.type == ChainEventType.ERROR:
        click.echo(f"Monitor error: {data.get('detail')}", err=True)


def run_chain(runner: ChainRunner, instance_id: Optional[str] = None) -> int:
    """Run a chain with console reporting; returns the process exit code.

    SIGINT and SIGTERM stop the chain instead of killing the process
    mid-dispatch, including while the session is still being prepared.
    """

    def _handle_signal(_signum, _frame):
        click.echo("\nShutting down task chain...")
        runner.stop()

    previous_handlers = {
        signum: signal.signal(signum, _handle_signal) for signum in (signal.SIGINT, signal.SIGTERM)
    }
    try:
        outcome = runner.run(instance_id=instance_id, on_event=report_event, check=True)
    except DispatchFailure as e:
        raise click.ClickException(f"{e}. Instruction: {e.instruction!r}")
    finally:
        for signum, handler in previous_handlers.items():
            signal.signal(signum, handler)

    if outcome.state == MonitorState.COMPLETE:
        click.echo(f"Task: {runner.config.task_description!r}")
        return 0
    if outcome.state == MonitorState.STOPPED:
        return 0
    return 1
