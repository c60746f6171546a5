"""Thin tmux client built on libtmux."""

import logging
from typing import Dict, List, Optional

import libtmux

from cli_task_chain.constants import TMUX_HISTORY_LINES

logger = logging.getLogger(__name__)


class TmuxClient:
    """Session-level tmux operations used by the terminal channel."""

    def __init__(self) -> None:
        self.server = libtmux.Server()

    def _get_session(self, session_name: str):
        return self.server.sessions.get(session_name=session_name, default=None)

    def session_exists(self, session_name: str) -> bool:
        """Check if a tmux session exists."""
        try:
            return self._get_session(session_name) is not None
        except Exception:
            return False

    def list_sessions(self) -> List[Dict[str, str]]:
        """List sessions as ``{"name", "created"}`` dicts (created = unix seconds)."""
        try:
            return [
                {"name": session.session_name or "", "created": session.session_created or "0"}
                for session in self.server.sessions
            ]
        except Exception as e:
            # A server with no sessions is not running at all
            logger.debug(f"Failed to list tmux sessions: {e}")
            return []

    def create_session(self, session_name: str, working_directory: Optional[str] = None) -> str:
        """Create a detached session running the default shell."""
        try:
            session = self.server.new_session(
                session_name=session_name,
                start_directory=working_directory,
                detach=True,
            )
            logger.info(f"Created tmux session: {session_name}")
            return session.session_name
        except Exception as e:
            logger.error(f"Failed to create session {session_name}: {e}")
            raise

    def send_keys(self, session_name: str, keys: str, enter: bool = True) -> None:
        """Type ``keys`` into the session's active pane, then submit with Enter.

        Text and Enter are sent as two separate key events so the agent never
        sees a partially pasted line as submitted.
        """
        try:
            session = self._get_session(session_name)
            if session is None:
                raise ValueError(f"Session '{session_name}' not found")
            pane = session.active_window.active_pane
            if pane is None:
                raise ValueError(f"Session '{session_name}' has no active pane")
            pane.send_keys(keys, enter=False, literal=True)
            if enter:
                pane.send_keys("Enter", enter=False)
        except Exception as e:
            logger.error(f"Failed to send keys to {session_name}: {e}")
            raise

    def get_history(self, session_name: str, tail_lines: Optional[int] = None) -> str:
        """Capture the visible pane output, trimmed to the last ``tail_lines`` lines."""
        try:
            session = self._get_session(session_name)
            if session is None:
                raise ValueError(f"Session '{session_name}' not found")
            pane = session.active_window.active_pane
            if pane is None:
                raise ValueError(f"Session '{session_name}' has no active pane")
            result = pane.cmd("capture-pane", "-p")
            if result.stderr:
                raise RuntimeError("\n".join(result.stderr))
            lines = [line.rstrip() for line in result.stdout]
            while lines and not lines[-1]:
                lines.pop()
            lines_limit = tail_lines if tail_lines is not None else TMUX_HISTORY_LINES
            if lines_limit > 0:
                lines = lines[-lines_limit:]
            return "\n".join(lines)
        except Exception as e:
            logger.error(f"Failed to get history from {session_name}: {e}")
            raise

    def rename_session(self, session_name: str, new_name: str) -> None:
        try:
            session = self._get_session(session_name)
            if session is None:
                raise ValueError(f"Session '{session_name}' not found")
            session.rename_session(new_name)
            logger.info(f"Renamed tmux session {session_name} -> {new_name}")
        except Exception as e:
            logger.error(f"Failed to rename session {session_name}: {e}")
            raise

    def kill_session(self, session_name: str) -> bool:
        """Kill a session; returns False if it did not exist."""
        try:
            session = self._get_session(session_name)
            if session is None:
                return False
            session.kill()
            logger.info(f"Killed tmux session: {session_name}")
            return True
        except Exception as e:
            logger.error(f"Failed to kill session {session_name}: {e}")
            raise


# Module-level singleton
tmux_client = TmuxClient()
