"""Constants for the CLI Task Chain (tchain) application.

This module defines the configuration constants used throughout tchain,
including directory paths, tmux settings and the default chain options.

tchain drives an interactive CLI agent (Claude Code, Codex) running in a tmux
session through an ordered chain of stages, injecting the next instruction
whenever the agent prints the completion keyword of the current stage.
"""

import os
from pathlib import Path
from typing import Optional

from cli_task_chain.models.provider import ProviderType


def _get_int_env(name: str, default: int, minimum: Optional[int] = None) -> int:
    """Parse int env var with safe fallback; values below ``minimum`` fall back too."""
    try:
        value = int(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default
    if minimum is not None and value < minimum:
        return default
    return value


def _get_float_env(name: str, default: float, positive: bool = False) -> float:
    """Parse non-negative float env var with safe fallback.

    With ``positive`` zero also falls back to ``default``.
    """
    try:
        value = float(os.getenv(name, str(default)))
    except (TypeError, ValueError):
        return default
    if not value >= 0 or (positive and value == 0):
        return default
    return value


# =============================================================================
# Session Configuration
# =============================================================================
# Sessions spawned by tchain are prefixed to distinguish them from user sessions
SESSION_PREFIX = "claude_"

# Instance ids with these prefixes map to "<SESSION_PREFIX><instance_id>";
# any other instance id is used verbatim as a tmux session name
INSTANCE_ID_PREFIXES = ("auto_", "spec_")

# Placeholder written into generated task configs when no instance is known yet
PLACEHOLDER_INSTANCE_ID = "YOUR_INSTANCE_ID"

# =============================================================================
# Provider Configuration
# =============================================================================
# Available CLI providers - derived from the ProviderType enum for consistency
PROVIDERS = [p.value for p in ProviderType]

# Default provider used when --provider is not specified
DEFAULT_PROVIDER = ProviderType.CLAUDE_CODE.value

# =============================================================================
# Tmux Configuration
# =============================================================================
# Maximum lines of visible pane output captured per poll
TMUX_HISTORY_LINES = 200

# Lines inspected when checking whether an agent prompt is currently visible
READY_CHECK_TAIL_LINES = 30

# Spawn readiness polling
SPAWN_READY_ATTEMPTS = 10
SPAWN_READY_INTERVAL = 2.0

# =============================================================================
# Chain Monitor Defaults
# =============================================================================
# All durations are in seconds, matching the task config wire format
DEFAULT_POLL_INTERVAL = _get_float_env("TCHAIN_POLL_INTERVAL", 5.0, positive=True)
DEFAULT_TIMEOUT = _get_float_env("TCHAIN_TIMEOUT", 600.0, positive=True)
DEFAULT_RETRY_ATTEMPTS = _get_int_env("TCHAIN_RETRY_ATTEMPTS", 3, minimum=1)
DEFAULT_RETRY_DELAY = _get_float_env("TCHAIN_RETRY_DELAY", 2.0)

# Custom --stages workflows get a longer overall budget
CUSTOM_STAGES_TIMEOUT = 1800.0

# Trailing window of observed output kept by the monitor (characters)
OUTPUT_BUFFER_CAPACITY = _get_int_env("TCHAIN_BUFFER_CAPACITY", 10000, minimum=1)

# Placeholder substituted with the task description
TASK_PLACEHOLDER = "TASK"

# =============================================================================
# Application Directory Structure
# =============================================================================
# Base directory for all tchain data (~/.tchain)
TCHAIN_HOME_DIR = Path(os.getenv("TCHAIN_HOME", str(Path.home() / ".tchain")))

# Log file directory
LOG_DIR = TCHAIN_HOME_DIR / "logs"

# Workflow presets: bundled with the package, plus user presets
BUNDLED_WORKFLOWS_DIR = Path(__file__).parent / "workflows"
USER_WORKFLOWS_DIR = TCHAIN_HOME_DIR / "workflows"

# Default preset used when neither --preset nor --stages is given
DEFAULT_PRESET = "default"
