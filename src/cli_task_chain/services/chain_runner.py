"""Run a task config end to end against an agent session.

Resolves which session to drive, sends the initial prompt and runs the chain
monitor until the chain completes, fails, times out or is stopped.
"""

import logging
import threading
from typing import Callable, Optional

from cli_task_chain.channels.tmux import TmuxChannel
from cli_task_chain.constants import PLACEHOLDER_INSTANCE_ID
from cli_task_chain.detection.signals import CompletionSignalDetector
from cli_task_chain.exceptions import DispatchFailure, TaskChainError
from cli_task_chain.models.monitor import ChainEvent, ChainOutcome, MonitorState
from cli_task_chain.models.workflow import TaskConfig
from cli_task_chain.services.chain_monitor import ChainMonitor
from cli_task_chain.utils.terminal import session_name_to_instance_id

logger = logging.getLogger(__name__)


def resolve_named_session(channel: TmuxChannel, name: str, working_dir: Optional[str] = None) -> str:
    """Use (or create) a session with an exact name and return its instance id.

    An existing session gets the agent started in it unless the agent's
    prompt is already visible. A missing session is spawned and renamed.
    """
    try:
        if channel.exists(name):
            logger.info(f"Using existing session: {name}")
            if channel.is_agent_ready(name):
                logger.info(f"Agent is already running in session: {name}")
            else:
                logger.info(f"Starting agent in existing session: {name}")
                result = channel.start_agent(name)
                if not result.ok:
                    logger.warning(f"Could not start agent in session {name}: {result.error}")
            return session_name_to_instance_id(name)

        logger.info(f"Session '{name}' not found, creating new one")
        result = channel.spawn(working_dir)
        if not result.ok or not result.session_id:
            raise TaskChainError(f"Failed to spawn agent instance: {result.error}")
        try:
            channel.rename(result.session_id, name)
        except Exception as e:
            logger.warning(f"Failed to rename session, using {result.session_id}: {e}")
            return result.session_id
        return session_name_to_instance_id(name)

    except Exception as e:
        logger.error(f"Failed to handle named session {name}: {e}")
        raise


class ChainRunner:
    """Sends a task's initial prompt and drives its chain to a final state."""

    def __init__(
        self,
        config: TaskConfig,
        channel: Optional[TmuxChannel] = None,
        working_dir: Optional[str] = None,
    ):
        self.config = config.with_task()
        self.channel = channel or TmuxChannel()
        self.working_dir = working_dir
        self.monitor: Optional[ChainMonitor] = None
        # Stop requests arriving before the monitor exists are honoured once it does
        self._stop_requested = threading.Event()

    def resolve_instance(self, instance_id: Optional[str] = None) -> str:
        """Explicit instance, else the configured one, else the latest (spawned if none)."""
        if instance_id:
            return instance_id
        if self.config.instance_id and self.config.instance_id != PLACEHOLDER_INSTANCE_ID:
            return self.config.instance_id
        logger.info("Finding latest instance...")
        return self.channel.latest_instance_id(self.working_dir)

    def prepare(
        self,
        instance_id: Optional[str] = None,
        on_event: Optional[Callable[[ChainEvent], None]] = None,
    ) -> ChainMonitor:
        """Send the initial prompt and build the monitor (not yet started)."""
        try:
            instance_id = self.resolve_instance(instance_id)
            logger.info(f"Instance ID: {instance_id}, task: {self.config.task_description!r}")

            result = self.channel.send(instance_id, self.config.initial_prompt)
            if not result.ok:
                raise TaskChainError(f"Failed to send initial prompt: {result.error}")
            logger.info("Initial prompt sent successfully")

            self.monitor = ChainMonitor.from_config(
                self.config,
                self.channel,
                instance_id=instance_id,
                detector=CompletionSignalDetector(self.channel.provider.signal_profile),
            )
            if on_event is not None:
                self.monitor.on(None, on_event)
            return self.monitor

        except Exception as e:
            logger.error(f"Failed to start task chain: {e}")
            raise

    def run(
        self,
        instance_id: Optional[str] = None,
        on_event: Optional[Callable[[ChainEvent], None]] = None,
        check: bool = False,
    ) -> ChainOutcome:
        """Run the chain to a final state.

        With ``check`` a failed dispatch raises ``DispatchFailure`` instead of
        being returned as a FAILED outcome.
        """
        if self._stop_requested.is_set():
            return self._stopped_outcome(instance_id)

        monitor = self.prepare(instance_id, on_event)
        if self._stop_requested.is_set():
            logger.info("Stop requested before the chain monitor started")
            return self._stopped_outcome(monitor.instance_id)

        monitor.start()
        if self._stop_requested.is_set():
            monitor.stop()
        monitor.run()
        outcome = monitor.outcome()
        if check and outcome.state == MonitorState.FAILED:
            self._raise_for_failure(outcome)
        return outcome

    def _raise_for_failure(self, outcome: ChainOutcome) -> None:
        keyword = outcome.failed_keyword or ""
        stage_index = self.config.chain.index_of(keyword)
        instruction = self.config.chain[stage_index].instruction if stage_index is not None else ""
        raise DispatchFailure(keyword, instruction)

    def _stopped_outcome(self, instance_id: Optional[str]) -> ChainOutcome:
        return ChainOutcome(
            state=MonitorState.STOPPED,
            instance_id=instance_id or self.config.instance_id,
            total_stages=len(self.config.chains),
        )

    def stop(self) -> None:
        """Stop the chain; safe to call before or while the monitor runs."""
        self._stop_requested.set()
        if self.monitor is not None:
            self.monitor.stop()

