"""Unit tests for Claude Code readiness detection."""

import pytest

from cli_task_chain.models.provider import ProviderType
from cli_task_chain.providers.claude_code import ClaudeCodeProvider
from cli_task_chain.providers.manager import get_provider


class TestClaudeCodeIsReady:
    """Tests for is_ready() focusing on scrollback false-ready prevention."""

    def _make_provider(self):
        return ClaudeCodeProvider()

    def test_box_prompt(self):
        """Boxed input prompt at the bottom -> ready."""
        output = (
            "Some startup output\n"
            "╭──────────────────────────╮\n"
            "│ >                        │\n"
            "╰──────────────────────────╯\n"
        )
        assert self._make_provider().is_ready(output)

    def test_idle_prompt_with_status_bar(self):
        """Bare prompt with placeholder text plus status bar (v2.x) -> ready."""
        output = (
            "Some old output\n"
            '❯ Try "how do I log an error?"\n'
            "────────────────────────────\n"
            "  ⏵⏵ bypass permissions on\n"
        )
        assert self._make_provider().is_ready(output)

    def test_idle_prompt_without_status_bar(self):
        """A shell line starting with '>' is not the agent prompt."""
        assert not self._make_provider().is_ready("> \n")

    def test_ansi_codes_stripped(self):
        output = (
            "\x1b[2m╭──────╮\x1b[0m\n"
            "\x1b[2m│ > \x1b[0m\n"
            "\x1b[2m╰──────╯\x1b[0m\n"
        )
        assert self._make_provider().is_ready(output)

    def test_stale_prompt_in_scrollback(self):
        """Prompt box scrolled out of the tail while the agent is still loading -> not ready."""
        output = (
            "╭──────╮\n"
            "│ > \n"
            "╰──────╯\n"
            + "".join(f"loading step {i}\n" for i in range(12))
        )
        assert not self._make_provider().is_ready(output)

    def test_empty_output(self):
        assert not self._make_provider().is_ready("")


class TestClaudeCodeStartupStates:
    def test_needs_update(self):
        provider = ClaudeCodeProvider()
        assert provider.needs_update("Claude Code needs an update.\nRun claude update")
        assert not provider.needs_update("╭────╮\n│ > \n╰────╯")

    def test_dropped_to_shell(self):
        provider = ClaudeCodeProvider()
        assert provider.dropped_to_shell("Welcome to Claude Code!\nbash-5.2$ ")
        assert not provider.dropped_to_shell("Welcome to Claude Code!\n╭────╮")

    def test_launch_command(self):
        provider = ClaudeCodeProvider()
        assert provider.launch_command() == "claude --dangerously-skip-permissions"
        assert provider.launch_command(resume=True).endswith("--continue")

    def test_signal_profile(self):
        profile = ClaudeCodeProvider().signal_profile
        assert profile.status_marker == "⏺"
        assert "❯" in profile.prompt_prefixes


class TestProviderManager:
    def test_get_provider(self):
        assert isinstance(get_provider(ProviderType.CLAUDE_CODE.value), ClaudeCodeProvider)

    def test_unknown_provider(self):
        with pytest.raises(ValueError, match="Available providers"):
            get_provider("kiro_cli")
