"""Exceptions raised by the task chain engine."""

from typing import List, Optional


class TaskChainError(Exception):
    """Base class for tchain errors."""

    pass


class ConfigurationError(TaskChainError, ValueError):
    """Malformed or structurally invalid chain / task configuration.

    Raised before a monitor is started and never retried.
    """

    def __init__(self, message: str, errors: Optional[List[str]] = None):
        self.errors = list(errors or [])
        if self.errors:
            message = f"{message}: {'; '.join(self.errors)}"
        super().__init__(message)


class ChannelReadError(TaskChainError):
    """Transient failure reading session output."""

    pass


class DispatchFailure(TaskChainError):
    """Sending a stage instruction failed after all retry attempts."""

    def __init__(self, keyword: str, instruction: str):
        self.keyword = keyword
        self.instruction = instruction
        super().__init__(f"Failed to dispatch instruction for keyword '{keyword}'")


class AlreadyActiveError(TaskChainError):
    """start() called on a monitor that is already polling."""

    pass


class InvalidStateError(TaskChainError):
    """Operation not allowed in the monitor's current state."""

    pass
