"""Terminal channel backed by tmux sessions."""

import logging
import time
from datetime import datetime
from typing import Dict, List, Optional

from cli_task_chain.channels.base import BaseChannel
from cli_task_chain.clients.tmux import tmux_client
from cli_task_chain.constants import (
    READY_CHECK_TAIL_LINES,
    SESSION_PREFIX,
    SPAWN_READY_ATTEMPTS,
    SPAWN_READY_INTERVAL,
)
from cli_task_chain.exceptions import TaskChainError
from cli_task_chain.models.channel import ChannelResult
from cli_task_chain.providers.base import BaseProvider
from cli_task_chain.providers.claude_code import ClaudeCodeProvider
from cli_task_chain.utils.terminal import (
    generate_instance_id,
    instance_id_to_session_name,
    session_name_to_instance_id,
)

logger = logging.getLogger(__name__)

# Grace periods while an agent boots inside a fresh shell
SHELL_STARTUP_DELAY = 1.0
RESTART_DELAY = 3.0
RESUME_STARTUP_DELAY = 5.0


class TmuxChannel(BaseChannel):
    """Drives an agent running in a tmux session.

    Session ids accepted by every method are instance ids; they are mapped to
    tmux session names with ``instance_id_to_session_name``.
    """

    def __init__(self, provider: Optional[BaseProvider] = None):
        self.provider = provider or ClaudeCodeProvider()

    def exists(self, session_id: str) -> bool:
        return tmux_client.session_exists(instance_id_to_session_name(session_id))

    def send(self, session_id: str, text: str) -> ChannelResult:
        session_name = instance_id_to_session_name(session_id)
        if not tmux_client.session_exists(session_name):
            return ChannelResult.failure(f"Session {session_name} does not exist")
        try:
            tmux_client.send_keys(session_name, text)
            return ChannelResult.success()
        except Exception as e:
            return ChannelResult.failure(f"Send failed: {e}")

    def read(self, session_id: str, max_lines: int) -> ChannelResult:
        session_name = instance_id_to_session_name(session_id)
        if not tmux_client.session_exists(session_name):
            return ChannelResult.failure(f"Session {session_name} does not exist")
        try:
            output = tmux_client.get_history(session_name, tail_lines=max_lines)
            return ChannelResult.success(text=output)
        except Exception as e:
            return ChannelResult.failure(f"Failed to read from {session_name}: {e}")

    def spawn(self, working_dir: Optional[str] = None) -> ChannelResult:
        """Create a ``claude_auto_<ms>`` session and start the agent in it."""
        instance_id = generate_instance_id()
        session_name = instance_id_to_session_name(instance_id)
        logger.info(f"Spawning agent instance {instance_id} in {working_dir or 'current directory'}")

        try:
            tmux_client.create_session(session_name, working_directory=working_dir)
        except Exception as e:
            return ChannelResult.failure(f"Failed to create tmux session: {e}")

        time.sleep(SHELL_STARTUP_DELAY)
        try:
            tmux_client.send_keys(session_name, self.provider.launch_command())
        except Exception as e:
            self._discard(session_name)
            return ChannelResult.failure(f"Failed to start agent: {e}")

        for attempt in range(1, SPAWN_READY_ATTEMPTS + 1):
            time.sleep(SPAWN_READY_INTERVAL)
            try:
                output = tmux_client.get_history(session_name, tail_lines=READY_CHECK_TAIL_LINES)
            except Exception as e:
                logger.warning(f"Readiness check failed for {session_name}: {e}")
                continue

            if self.provider.needs_update(output):
                self._discard(session_name)
                return ChannelResult.failure(
                    f"Agent needs an update before it can start (session {session_name})"
                )

            if self.provider.dropped_to_shell(output):
                logger.info(f"Agent exited to the shell in {session_name}, restarting")
                return self._restart(instance_id, session_name)

            if self.provider.is_ready(output):
                logger.info(f"Agent instance spawned and ready: {instance_id}")
                return ChannelResult.success(session_id=instance_id)

            logger.info(f"Attempt {attempt}/{SPAWN_READY_ATTEMPTS}: agent still initializing")

        if tmux_client.session_exists(session_name):
            logger.warning(f"Session exists but agent may not be fully ready: {instance_id}")
            return ChannelResult.success(session_id=instance_id)
        return ChannelResult.failure(f"Session {session_name} failed to start properly")

    def _restart(self, instance_id: str, session_name: str) -> ChannelResult:
        try:
            tmux_client.send_keys(session_name, self.provider.launch_command())
            time.sleep(RESTART_DELAY)
            output = tmux_client.get_history(session_name, tail_lines=READY_CHECK_TAIL_LINES)
        except Exception as e:
            self._discard(session_name)
            return ChannelResult.failure(f"Failed to restart agent: {e}")

        if self.provider.dropped_to_shell(output):
            self._discard(session_name)
            return ChannelResult.failure(f"Agent keeps exiting to the shell in {session_name}")
        logger.info(f"Agent instance restarted: {instance_id}")
        return ChannelResult.success(session_id=instance_id)

    def _discard(self, session_name: str) -> None:
        try:
            tmux_client.kill_session(session_name)
        except Exception as e:
            logger.warning(f"Failed to clean up session {session_name}: {e}")

    def is_agent_ready(self, session_id: str) -> bool:
        """True when the agent's input prompt is visible in the session."""
        result = self.read(session_id, READY_CHECK_TAIL_LINES)
        return result.ok and self.provider.is_ready(result.text)

    def start_agent(self, session_id: str, resume: bool = True) -> ChannelResult:
        """Launch the agent inside an existing session and give it time to boot."""
        result = self.send(session_id, self.provider.launch_command(resume=resume))
        if result.ok:
            time.sleep(RESUME_STARTUP_DELAY)
        return result

    def rename(self, session_id: str, new_name: str) -> None:
        tmux_client.rename_session(instance_id_to_session_name(session_id), new_name)

    def list_instances(self) -> List[Dict]:
        """List tchain-managed sessions, newest first."""
        instances = []
        for session in tmux_client.list_sessions():
            name = session["name"]
            if not name.startswith(SESSION_PREFIX):
                continue
            try:
                created = datetime.fromtimestamp(int(session["created"]))
            except (TypeError, ValueError):
                created = datetime.fromtimestamp(0)
            instances.append(
                {
                    "instance_id": session_name_to_instance_id(name),
                    "session_name": name,
                    "created": created,
                }
            )
        instances.sort(key=lambda instance: instance["created"], reverse=True)
        return instances

    def latest_instance_id(self, working_dir: Optional[str] = None) -> str:
        """Most recently created instance, spawning one when none exist."""
        instances = self.list_instances()
        if instances:
            return instances[0]["instance_id"]

        logger.info("No active agent instances found, spawning a new one")
        result = self.spawn(working_dir)
        if not result.ok or not result.session_id:
            raise TaskChainError(f"Failed to spawn agent instance: {result.error}")
        return result.session_id
