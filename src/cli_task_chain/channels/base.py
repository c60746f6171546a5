"""Terminal channel interface consumed by the chain engine."""

from abc import ABC, abstractmethod
from typing import Optional

from cli_task_chain.models.channel import ChannelResult


class BaseChannel(ABC):
    """Capability to observe and drive an interactive agent session.

    Implementations report failures through ``ChannelResult(ok=False)``
    rather than raising, so the engine can treat them uniformly.
    """

    @abstractmethod
    def exists(self, session_id: str) -> bool:
        """Check whether the session exists."""
        pass

    @abstractmethod
    def send(self, session_id: str, text: str) -> ChannelResult:
        """Deliver ``text`` followed by a submit action."""
        pass

    @abstractmethod
    def read(self, session_id: str, max_lines: int) -> ChannelResult:
        """Return the most recent visible output, trimmed to ``max_lines``."""
        pass

    @abstractmethod
    def spawn(self, working_dir: Optional[str] = None) -> ChannelResult:
        """Create a new session running the agent; ``session_id`` is set on success."""
        pass
