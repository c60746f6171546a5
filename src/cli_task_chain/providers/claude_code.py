"""Claude Code provider implementation."""

import re

from cli_task_chain.models.signal import SignalProfile
from cli_task_chain.providers.base import BaseProvider

# Regex patterns for Claude Code output analysis
ANSI_CODE_PATTERN = r"\x1b\[[\d;?]*[a-zA-Z]"
# Boxed input prompt of older releases: "╭─...", "│ > ...", "╰─..."
BOX_TOP_PATTERN = r"╭─"
BOX_BOTTOM_PATTERN = r"╰─"
BOX_PROMPT_PATTERN = r"│\s*>"
# Bare prompt at start of line in newer releases (may carry placeholder text)
IDLE_PROMPT_PATTERN = r"^[>❯]\s"
# Footer hints that only appear while Claude Code owns the pane
STATUS_BAR_PATTERN = r"Bypassing Permissions|bypass permissions|\? for shortcuts|Context left until"
UPDATE_REQUIRED_PATTERN = r"needs an update|claude update"
WELCOME_PATTERN = r"welcome to claude code"
SHELL_PROMPT_PATTERN = r"bash-"

# Only the bottom of the pane reflects the current state
READY_TAIL_LINES = 10

CLAUDE_CODE_SIGNAL_PROFILE = SignalProfile(status_marker="⏺", prompt_prefixes=(">", "❯"))


class ClaudeCodeProvider(BaseProvider):
    """Provider for Claude Code CLI tool integration."""

    name = "claude_code"

    @property
    def signal_profile(self) -> SignalProfile:
        return CLAUDE_CODE_SIGNAL_PROFILE

    def launch_command(self, resume: bool = False) -> str:
        # --dangerously-skip-permissions: stage instructions are injected
        # unattended, so permission prompts would stall the chain
        command = "claude --dangerously-skip-permissions"
        if resume:
            command += " --continue"
        return command

    @staticmethod
    def _clean(output: str) -> str:
        return re.sub(ANSI_CODE_PATTERN, "", output)

    def is_ready(self, output: str) -> bool:
        """Check whether the Claude Code input prompt is visible at the bottom of the pane.

        Old prompts in scrollback must not count, so only the last few
        non-blank lines are inspected.
        """
        lines = [line for line in self._clean(output).split("\n") if line.strip()]
        tail = "\n".join(lines[-READY_TAIL_LINES:])
        if not tail:
            return False

        has_box = (
            re.search(BOX_TOP_PATTERN, tail) is not None
            and re.search(BOX_BOTTOM_PATTERN, tail) is not None
            and re.search(BOX_PROMPT_PATTERN, tail) is not None
        )
        if has_box:
            return True
        return bool(re.search(IDLE_PROMPT_PATTERN, tail, re.MULTILINE)) and bool(
            re.search(STATUS_BAR_PATTERN, tail)
        )

    def needs_update(self, output: str) -> bool:
        return bool(re.search(UPDATE_REQUIRED_PATTERN, self._clean(output), re.IGNORECASE))

    def dropped_to_shell(self, output: str) -> bool:
        clean = self._clean(output).lower()
        return bool(re.search(WELCOME_PATTERN, clean)) and bool(
            re.search(SHELL_PROMPT_PATTERN, clean)
        )
