"""Unit tests for the tmux-backed terminal channel."""

from unittest.mock import MagicMock, patch

import pytest

from cli_task_chain.channels.tmux import TmuxChannel
from cli_task_chain.clients.tmux import TmuxClient
from cli_task_chain.exceptions import TaskChainError
from cli_task_chain.models.channel import ChannelResult
from cli_task_chain.providers.codex import CodexProvider

READY_OUTPUT = (
    "╭──────────────────────────────╮\n"
    "│ >                            │\n"
    "╰──────────────────────────────╯\n"
    "  ? for shortcuts\n"
)


@pytest.fixture
def mock_tmux():
    with patch("cli_task_chain.channels.tmux.tmux_client") as mock_tmux:
        mock_tmux.session_exists.return_value = True
        yield mock_tmux


@pytest.fixture(autouse=True)
def no_sleep():
    with patch("cli_task_chain.channels.tmux.time") as mock_time:
        yield mock_time


class TestSendAndRead:
    def test_send(self, mock_tmux):
        result = TmuxChannel().send("auto_1", "write tests")
        assert result.ok
        mock_tmux.session_exists.assert_called_with("claude_auto_1")
        mock_tmux.send_keys.assert_called_once_with("claude_auto_1", "write tests")

    def test_send_to_literal_session_name(self, mock_tmux):
        TmuxChannel().send("dev", "hello")
        mock_tmux.send_keys.assert_called_once_with("dev", "hello")

    def test_send_missing_session(self, mock_tmux):
        mock_tmux.session_exists.return_value = False
        result = TmuxChannel().send("auto_1", "write tests")
        assert not result.ok
        assert "does not exist" in result.error
        mock_tmux.send_keys.assert_not_called()

    def test_send_error_returned(self, mock_tmux):
        mock_tmux.send_keys.side_effect = RuntimeError("no pane")
        result = TmuxChannel().send("auto_1", "write tests")
        assert not result.ok
        assert "no pane" in result.error

    def test_read(self, mock_tmux):
        mock_tmux.get_history.return_value = "⏺ DONE"
        result = TmuxChannel().read("spec_1_2", 50)
        assert result.ok
        assert result.text == "⏺ DONE"
        mock_tmux.get_history.assert_called_once_with("claude_spec_1_2", tail_lines=50)

    def test_read_error_returned(self, mock_tmux):
        mock_tmux.get_history.side_effect = RuntimeError("server exited")
        result = TmuxChannel().read("auto_1", 50)
        assert not result.ok
        assert "server exited" in result.error

    def test_exists(self, mock_tmux):
        assert TmuxChannel().exists("auto_1")
        mock_tmux.session_exists.assert_called_once_with("claude_auto_1")


@patch("cli_task_chain.channels.tmux.generate_instance_id", return_value="auto_100")
class TestSpawn:
    def test_ready(self, _mock_id, mock_tmux):
        mock_tmux.get_history.side_effect = ["Loading...", READY_OUTPUT]
        result = TmuxChannel().spawn("/work")
        assert result.ok
        assert result.session_id == "auto_100"
        mock_tmux.create_session.assert_called_once_with(
            "claude_auto_100", working_directory="/work"
        )
        mock_tmux.send_keys.assert_called_once_with(
            "claude_auto_100", "claude --dangerously-skip-permissions"
        )

    def test_uses_provider_launch_command(self, _mock_id, mock_tmux):
        mock_tmux.get_history.return_value = "› \n"
        TmuxChannel(CodexProvider()).spawn()
        mock_tmux.send_keys.assert_called_once_with("claude_auto_100", "codex")

    def test_needs_update(self, _mock_id, mock_tmux):
        mock_tmux.get_history.return_value = "Claude Code needs an update. Run: claude update"
        result = TmuxChannel().spawn()
        assert not result.ok
        assert "update" in result.error
        mock_tmux.kill_session.assert_called_once_with("claude_auto_100")

    def test_dropped_to_shell_restarts(self, _mock_id, mock_tmux):
        mock_tmux.get_history.side_effect = [
            "Welcome to Claude Code\nbash-5.2$ ",
            READY_OUTPUT,
        ]
        result = TmuxChannel().spawn()
        assert result.ok
        assert mock_tmux.send_keys.call_count == 2

    def test_keeps_dropping_to_shell(self, _mock_id, mock_tmux):
        mock_tmux.get_history.return_value = "Welcome to Claude Code\nbash-5.2$ "
        result = TmuxChannel().spawn()
        assert not result.ok
        mock_tmux.kill_session.assert_called_once_with("claude_auto_100")

    def test_not_confirmed_but_alive(self, _mock_id, mock_tmux):
        mock_tmux.get_history.return_value = "Loading..."
        result = TmuxChannel().spawn()
        assert result.ok
        assert result.session_id == "auto_100"
        assert mock_tmux.get_history.call_count == 10

    def test_session_died(self, _mock_id, mock_tmux):
        mock_tmux.get_history.return_value = "Loading..."
        mock_tmux.session_exists.return_value = False
        result = TmuxChannel().spawn()
        assert not result.ok

    def test_create_failure(self, _mock_id, mock_tmux):
        mock_tmux.create_session.side_effect = RuntimeError("duplicate session")
        result = TmuxChannel().spawn()
        assert not result.ok
        assert "duplicate session" in result.error


class TestInstances:
    def test_list_instances_newest_first(self, mock_tmux):
        mock_tmux.list_sessions.return_value = [
            {"name": "claude_auto_1", "created": "100"},
            {"name": "scratch", "created": "200"},
            {"name": "claude_auto_2", "created": "300"},
        ]
        instances = TmuxChannel().list_instances()
        assert [instance["instance_id"] for instance in instances] == ["auto_2", "auto_1"]

    def test_latest_instance(self, mock_tmux):
        mock_tmux.list_sessions.return_value = [{"name": "claude_auto_7", "created": "10"}]
        assert TmuxChannel().latest_instance_id() == "auto_7"

    def test_latest_instance_spawns_when_none(self, mock_tmux):
        mock_tmux.list_sessions.return_value = []
        channel = TmuxChannel()
        with patch.object(
            channel, "spawn", return_value=ChannelResult.success(session_id="auto_8")
        ) as mock_spawn:
            assert channel.latest_instance_id("/work") == "auto_8"
        mock_spawn.assert_called_once_with("/work")

    def test_latest_instance_spawn_failure(self, mock_tmux):
        mock_tmux.list_sessions.return_value = []
        channel = TmuxChannel()
        with patch.object(channel, "spawn", return_value=ChannelResult.failure("no tmux")):
            with pytest.raises(TaskChainError, match="no tmux"):
                channel.latest_instance_id()

    def test_agent_ready(self, mock_tmux):
        mock_tmux.get_history.return_value = READY_OUTPUT
        assert TmuxChannel().is_agent_ready("dev")

    def test_start_agent_resumes(self, mock_tmux):
        result = TmuxChannel().start_agent("dev")
        assert result.ok
        mock_tmux.send_keys.assert_called_once_with(
            "dev", "claude --dangerously-skip-permissions --continue"
        )

    def test_rename(self, mock_tmux):
        TmuxChannel().rename("auto_3", "feature-x")
        mock_tmux.rename_session.assert_called_once_with("claude_auto_3", "feature-x")


class TestTmuxClient:
    def _client_with_pane(self, stdout, stderr=None):
        with patch("cli_task_chain.clients.tmux.libtmux"):
            client = TmuxClient()
        pane = MagicMock()
        pane.cmd.return_value = MagicMock(stdout=stdout, stderr=stderr or [])
        session = MagicMock()
        session.active_window.active_pane = pane
        client.server.sessions.get.return_value = session
        return client, pane

    def test_history_trims_trailing_blank_lines(self):
        client, _pane = self._client_with_pane(["one", "two  ", "", ""])
        assert client.get_history("s") == "one\ntwo"

    def test_history_tail(self):
        client, _pane = self._client_with_pane(["1", "2", "3", "4"])
        assert client.get_history("s", tail_lines=2) == "3\n4"

    def test_history_error(self):
        client, _pane = self._client_with_pane([], stderr=["can't find pane"])
        with pytest.raises(RuntimeError):
            client.get_history("s")

    def test_send_keys_then_enter(self):
        client, pane = self._client_with_pane([])
        client.send_keys("s", "run the tests")
        assert pane.send_keys.call_args_list[0].args == ("run the tests",)
        assert pane.send_keys.call_args_list[0].kwargs == {"enter": False, "literal": True}
        assert pane.send_keys.call_args_list[1].args == ("Enter",)

    def test_missing_session(self):
        client, _pane = self._client_with_pane([])
        client.server.sessions.get.return_value = None
        assert not client.session_exists("s")
        with pytest.raises(ValueError):
            client.send_keys("s", "x")
