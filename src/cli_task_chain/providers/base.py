"""Base provider interface for interactive CLI agents."""

from abc import ABC, abstractmethod

from cli_task_chain.models.signal import SignalProfile


class BaseProvider(ABC):
    """Describes how to launch one CLI agent and read its screen."""

    name: str = ""

    @property
    @abstractmethod
    def signal_profile(self) -> SignalProfile:
        """Output conventions used by the completion signal detector."""
        pass

    @abstractmethod
    def launch_command(self, resume: bool = False) -> str:
        """Shell command that starts the agent inside a session."""
        pass

    @abstractmethod
    def is_ready(self, output: str) -> bool:
        """True when the agent's input prompt is currently visible."""
        pass

    def needs_update(self, output: str) -> bool:
        """True when the agent refuses to start until it is updated."""
        return False

    def dropped_to_shell(self, output: str) -> bool:
        """True when the agent started and exited back to the shell."""
        return False
