from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field


class MonitorState(str, Enum):
    """Chain monitor lifecycle."""

    IDLE = "idle"
    ACTIVE = "active"
    COMPLETE = "complete"
    FAILED = "failed"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"

    @property
    def is_terminal(self) -> bool:
        return self not in (MonitorState.IDLE, MonitorState.ACTIVE)


class ChainEventType(str, Enum):
    """Lifecycle events emitted by the chain monitor."""

    STARTED = "started"
    STAGE_EXECUTED = "stage_executed"
    CHAIN_COMPLETE = "chain_complete"
    CHAIN_FAILED = "chain_failed"
    TIMED_OUT = "timed_out"
    STOPPED = "stopped"
    ERROR = "error"


class ChainEvent(BaseModel):
    """A single lifecycle event and its payload."""

    type: ChainEventType
    data: Dict[str, Any] = Field(default_factory=dict)
    timestamp: datetime = Field(default_factory=datetime.now)


class StageExecution(BaseModel):
    """Record of one executed stage."""

    keyword: str
    instruction: str
    stage_index: int
    timestamp: datetime = Field(default_factory=datetime.now)


class ChainOutcome(BaseModel):
    """Final result of a chain run."""

    state: MonitorState
    instance_id: str
    executed_stages: List[StageExecution] = Field(default_factory=list)
    total_stages: int
    failed_keyword: Optional[str] = None

    @property
    def succeeded(self) -> bool:
        return self.state == MonitorState.COMPLETE
