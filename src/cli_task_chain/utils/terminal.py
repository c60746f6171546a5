"""Instance id and session name helpers."""

import time

from cli_task_chain.constants import INSTANCE_ID_PREFIXES, SESSION_PREFIX


def generate_instance_id() -> str:
    """Generate a unique instance id for a spawned session."""
    return f"auto_{int(time.time() * 1000)}"


def instance_id_to_session_name(instance_id: str) -> str:
    """Map an instance id to its tmux session name.

    - auto_1234567 -> claude_auto_1234567
    - spec_1_1_123 -> claude_spec_1_1_123
    - anything else (e.g. "dev") is already a session name
    """
    if instance_id.startswith(SESSION_PREFIX):
        return instance_id
    if instance_id.startswith(INSTANCE_ID_PREFIXES):
        return f"{SESSION_PREFIX}{instance_id}"
    return instance_id


def session_name_to_instance_id(session_name: str) -> str:
    """Reverse of instance_id_to_session_name."""
    if session_name.startswith(SESSION_PREFIX):
        return session_name[len(SESSION_PREFIX) :]
    return session_name
