"""Codex CLI provider implementation."""

import re

from cli_task_chain.models.signal import SignalProfile
from cli_task_chain.providers.base import BaseProvider

# Regex patterns for Codex output analysis
ANSI_CODE_PATTERN = r"\x1b\[[0-?]*[ -/]*[@-~]"
OSC_PATTERN = r"\x1b\][^\x07]*(?:\x07|\x1b\\)"
IDLE_PROMPT_PATTERN = r"(?:❯|›|codex>)"
# Codex may render a hint line like: "› ... for shortcuts"
IDLE_PROMPT_AT_END_PATTERN = (
    rf"(?:^|\n)\s*(?:{IDLE_PROMPT_PATTERN}\s*|›\s+.*for shortcuts.*)\s*\Z"
)
CONTEXT_FOOTER_PATTERN = r"^\s*\d+%\s+context left\s*$"
UPDATE_REQUIRED_PATTERN = r"update available.*required|please update codex"

# Codex prints "• ..." before assistant lines and "› ..." before user lines
CODEX_SIGNAL_PROFILE = SignalProfile(status_marker="•", prompt_prefixes=("›", "codex>"))


class CodexProvider(BaseProvider):
    """Provider for Codex CLI tool integration."""

    name = "codex"

    @property
    def signal_profile(self) -> SignalProfile:
        return CODEX_SIGNAL_PROFILE

    def launch_command(self, resume: bool = False) -> str:
        if resume:
            return "codex resume --last"
        return "codex"

    @staticmethod
    def _clean(output: str) -> str:
        """Strip control sequences and normalize line endings for parsing."""
        output = re.sub(OSC_PATTERN, "", output)
        output = re.sub(ANSI_CODE_PATTERN, "", output)
        return output.replace("\r", "\n")

    def is_ready(self, output: str) -> bool:
        clean = self._clean(output).rstrip()
        if not clean:
            return False
        if re.search(IDLE_PROMPT_AT_END_PATTERN, clean, re.IGNORECASE | re.MULTILINE):
            return True
        tail = "\n".join(clean.splitlines()[-5:])
        return bool(re.search(CONTEXT_FOOTER_PATTERN, tail, re.IGNORECASE | re.MULTILINE))

    def needs_update(self, output: str) -> bool:
        return bool(re.search(UPDATE_REQUIRED_PATTERN, self._clean(output), re.IGNORECASE))
