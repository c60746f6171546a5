from enum import Enum


class ProviderType(str, Enum):
    """Interactive CLI agents that can be driven through a chain."""

    CLAUDE_CODE = "claude_code"
    CODEX = "codex"
