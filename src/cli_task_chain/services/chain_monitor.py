"""Chain monitor: polls a session and advances a workflow chain.

Each poll tick reads the session, appends unseen output to a bounded buffer,
looks for a completion signal of the currently awaited keyword and, on a new
signal, dispatches the stage instruction (with retry) before advancing. A
tick runs to completion, retry waits included, before the next one starts.
"""

import logging
import threading
import time
from collections import defaultdict
from dataclasses import dataclass, field
from typing import Any, Callable, Dict, List, Optional

from cli_task_chain.channels.base import BaseChannel
from cli_task_chain.constants import OUTPUT_BUFFER_CAPACITY, TMUX_HISTORY_LINES
from cli_task_chain.detection.signals import CompletionSignalDetector
from cli_task_chain.exceptions import (
    AlreadyActiveError,
    ChannelReadError,
    ConfigurationError,
    InvalidStateError,
)
from cli_task_chain.models.monitor import (
    ChainEvent,
    ChainEventType,
    ChainOutcome,
    MonitorState,
    StageExecution,
)
from cli_task_chain.models.workflow import TaskConfig, WorkflowChain, WorkflowOptions
from cli_task_chain.services.dispatcher import RetryingDispatcher
from cli_task_chain.utils.output_buffer import OutputBuffer, new_output

logger = logging.getLogger(__name__)

EventCallback = Callable[[ChainEvent], None]

# Characters of buffer shown around a detected signal in the log
CONTEXT_CHARS = 150


@dataclass
class ChainRunState:
    """Mutable progress of one chain run, owned by a single monitor."""

    current_keyword: str
    output_buffer: OutputBuffer
    current_stage_index: int = 0
    # Absolute buffer offset of the last consumed occurrence, per keyword
    last_match_offset: Dict[str, int] = field(default_factory=dict)
    executed_stages: List[StageExecution] = field(default_factory=list)
    start_time: Optional[float] = None
    is_active: bool = False
    poll_count: int = 0
    last_capture: str = ""


class ChainMonitor:
    """Polls one session and drives one chain through its stages."""

    def __init__(
        self,
        instance_id: str,
        chain: WorkflowChain,
        channel: BaseChannel,
        options: Optional[WorkflowOptions] = None,
        detector: Optional[CompletionSignalDetector] = None,
        buffer_capacity: int = OUTPUT_BUFFER_CAPACITY,
        max_lines: int = TMUX_HISTORY_LINES,
        clock: Callable[[], float] = time.monotonic,
    ):
        if not instance_id:
            raise ConfigurationError("Missing required config: instanceId")

        self.instance_id = instance_id
        self.chain = chain
        self.channel = channel
        self.options = options or WorkflowOptions()
        self.detector = detector or CompletionSignalDetector()
        self.max_lines = max_lines
        self._clock = clock

        self.run_state = ChainRunState(
            current_keyword=chain.first_keyword,
            output_buffer=OutputBuffer(buffer_capacity),
        )
        self.events: List[ChainEvent] = []
        self._callbacks: Dict[Optional[ChainEventType], List[EventCallback]] = defaultdict(list)

        self._state = MonitorState.IDLE
        # Reentrant: stop() may run from a signal handler while the main
        # thread holds the lock inside start() or _finish()
        self._state_lock = threading.RLock()
        self._tick_lock = threading.Lock()
        # Set once a terminal state is reached; wakes poll and retry waits
        self._halt = threading.Event()
        self._dispatcher = RetryingDispatcher(
            channel,
            instance_id,
            retry_attempts=self.options.retry_attempts,
            retry_delay=self.options.retry_delay,
            cancel_event=self._halt,
        )

        logger.info(
            f"Chain monitor initialized: instance={instance_id} stages={len(chain)} "
            f"starting keyword={self.run_state.current_keyword!r}"
        )

    @classmethod
    def from_config(
        cls,
        config: TaskConfig,
        channel: BaseChannel,
        instance_id: Optional[str] = None,
        **kwargs: Any,
    ) -> "ChainMonitor":
        """Build a monitor from a task config whose placeholders are already substituted."""
        return cls(
            instance_id or config.instance_id,
            config.chain,
            channel,
            options=config.options,
            **kwargs,
        )

    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------

    def on(self, event_type: Optional[ChainEventType], callback: EventCallback) -> None:
        """Register a callback for one event type, or for every event when None."""
        self._callbacks[event_type].append(callback)

    def _emit(self, event_type: ChainEventType, data: Optional[Dict[str, Any]] = None) -> None:
        event = ChainEvent(type=event_type, data=data or {})
        self.events.append(event)
        for callback in self._callbacks[event_type] + self._callbacks[None]:
            callback(event)

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    @property
    def state(self) -> MonitorState:
        return self._state

    @property
    def is_active(self) -> bool:
        return self._state == MonitorState.ACTIVE

    def start(self) -> None:
        """Begin monitoring and perform one immediate poll."""
        with self._state_lock:
            if self._state == MonitorState.ACTIVE:
                raise AlreadyActiveError(f"Monitor for {self.instance_id} is already running")
            if self._state.is_terminal:
                raise InvalidStateError(
                    f"Monitor for {self.instance_id} already finished ({self._state.value})"
                )
            self.run_state.start_time = self._clock()
            self.run_state.is_active = True
            self._state = MonitorState.ACTIVE

        logger.info(
            f"Starting chain monitor: poll_interval={self.options.poll_interval}s "
            f"timeout={self.options.timeout}s retry_attempts={self.options.retry_attempts}"
        )
        self._emit(ChainEventType.STARTED)
        self.poll()

    def stop(self) -> None:
        """Cancel monitoring. No-op unless the monitor is active.

        Does not wait for an in-flight tick; a pending retry wait is cut short
        and no further poll or send is started.
        """
        if self._finish(MonitorState.STOPPED, ChainEventType.STOPPED):
            logger.info(f"Stopped chain monitor for {self.instance_id}")

    def run(self) -> MonitorState:
        """Start if needed and poll every ``poll_interval`` until a terminal state."""
        if self._state == MonitorState.IDLE:
            self.start()
        while self.is_active:
            if self._halt.wait(self.options.poll_interval):
                break
            self.poll()
        return self._state

    def _finish(
        self,
        new_state: MonitorState,
        event_type: ChainEventType,
        data: Optional[Dict[str, Any]] = None,
    ) -> bool:
        """Move from ACTIVE to a terminal state and report it exactly once."""
        with self._state_lock:
            if self._state != MonitorState.ACTIVE:
                return False
            self._state = new_state
            self.run_state.is_active = False
            self._halt.set()
        self._emit(event_type, data)
        return True

    # ------------------------------------------------------------------
    # Polling
    # ------------------------------------------------------------------

    def poll(self) -> None:
        """Run one poll tick. Ignored when the monitor is not active."""
        if not self.is_active:
            return
        with self._tick_lock:
            if not self.is_active:
                return
            self._tick()

    def _tick(self) -> None:
        run = self.run_state
        run.poll_count += 1
        elapsed = self._clock() - run.start_time
        logger.debug(
            f"Poll #{run.poll_count} ({elapsed:.1f}s) - looking for: {run.current_keyword!r}"
        )

        if elapsed > self.options.timeout:
            logger.warning(
                f"Timeout reached after {elapsed:.1f}s: "
                f"{len(run.executed_stages)}/{len(self.chain)} stages executed"
            )
            self._finish(
                MonitorState.TIMED_OUT,
                ChainEventType.TIMED_OUT,
                {
                    "completedStages": len(run.executed_stages),
                    "totalStages": len(self.chain),
                    "currentStageIndex": run.current_stage_index,
                },
            )
            return

        try:
            capture = self._read()
        except ChannelReadError as e:
            logger.error(f"Failed to read instance output: {e}")
            if self.is_active:
                self._emit(ChainEventType.ERROR, {"detail": str(e)})
            return

        # stop() may have landed while the read was in flight
        if not self.is_active:
            return

        chunk = new_output(run.last_capture, capture)
        run.last_capture = capture
        if chunk:
            logger.debug(f"New output: {len(chunk)} characters")
            run.output_buffer.append(chunk)

        self._check_for_keyword()

    def _read(self) -> str:
        try:
            result = self.channel.read(self.instance_id, self.max_lines)
        except Exception as e:
            raise ChannelReadError(str(e)) from e
        if not result.ok:
            raise ChannelReadError(result.error or "Failed to read instance output")
        return result.text

    def _check_for_keyword(self) -> None:
        run = self.run_state
        keyword = run.current_keyword
        buffer = run.output_buffer
        consumed = run.last_match_offset.get(keyword, -1)

        latest = buffer.rfind(keyword)
        if latest is None or latest <= consumed:
            return

        signal_offset = self.detector.find_signal(buffer.lines(), keyword, after_offset=consumed)
        if signal_offset is None:
            return

        start = max(0, signal_offset - buffer.origin - CONTEXT_CHARS)
        end = signal_offset - buffer.origin + len(keyword) + CONTEXT_CHARS
        logger.info(f"Valid completion keyword detected: {keyword!r}")
        logger.debug(f"Context:\n{buffer.text[start:end]}")

        run.last_match_offset[keyword] = latest
        self._execute_stage(run.current_stage_index)

    def _execute_stage(self, stage_index: int) -> None:
        if not self.is_active:
            return
        run = self.run_state
        stage = self.chain[stage_index]

        if any(
            execution.keyword == stage.keyword and execution.stage_index == stage_index
            for execution in run.executed_stages
        ):
            logger.warning(f"Stage for {stage.keyword!r} already executed, skipping")
            return

        logger.info(
            f"Executing stage {stage_index + 1}/{len(self.chain)}: {stage.instruction!r}"
        )
        run.executed_stages.append(
            StageExecution(
                keyword=stage.keyword, instruction=stage.instruction, stage_index=stage_index
            )
        )
        self._emit(
            ChainEventType.STAGE_EXECUTED,
            {"keyword": stage.keyword, "stageIndex": stage_index},
        )

        result = self._dispatcher.dispatch(stage.instruction)
        if result.cancelled or not self.is_active:
            logger.info(f"Monitor stopped while dispatching stage {stage_index + 1}")
            return

        if not result.success:
            logger.error(
                f"Failed to send instruction for {stage.keyword!r} after "
                f"{result.attempts} attempts: {result.error}"
            )
            self._finish(
                MonitorState.FAILED,
                ChainEventType.CHAIN_FAILED,
                {
                    "keyword": stage.keyword,
                    "instruction": stage.instruction,
                    "stageIndex": stage_index,
                    "error": result.error,
                },
            )
            return

        if stage.next_keyword:
            run.current_keyword = stage.next_keyword
            run.current_stage_index = stage_index + 1
            logger.info(f"Next keyword: {stage.next_keyword!r}")
            return

        logger.info("Chain complete - all stages executed successfully")
        self._finish(
            MonitorState.COMPLETE,
            ChainEventType.CHAIN_COMPLETE,
            {
                "totalStages": len(run.executed_stages),
                "executedStages": [execution.model_dump() for execution in run.executed_stages],
            },
        )

    # ------------------------------------------------------------------
    # Reporting
    # ------------------------------------------------------------------

    def status(self) -> Dict[str, Any]:
        run = self.run_state
        uptime = self._clock() - run.start_time if run.start_time is not None else 0.0
        return {
            "state": self._state.value,
            "is_active": self.is_active,
            "instance_id": self.instance_id,
            "current_keyword": run.current_keyword,
            "current_stage_index": run.current_stage_index,
            "total_stages": len(self.chain),
            "executed_stages": len(run.executed_stages),
            "poll_count": run.poll_count,
            "uptime": uptime,
        }

    def outcome(self) -> ChainOutcome:
        failed_keyword = None
        if self._state == MonitorState.FAILED and self.run_state.executed_stages:
            failed_keyword = self.run_state.executed_stages[-1].keyword
        return ChainOutcome(
            state=self._state,
            instance_id=self.instance_id,
            executed_stages=list(self.run_state.executed_stages),
            total_stages=len(self.chain),
            failed_keyword=failed_keyword,
        )
