"""Completion signal detection.

Agents mention the completion keyword far more often than they emit it: in
plans, todo lists, echoed instructions ("... then say STAGE1_DONE") and
remarks about intent. The detector only accepts a line that *is* the keyword,
optionally behind the agent's status marker, and rejects everything else.
Mention rejection always runs before acceptance.
"""

import logging
import re
from typing import Iterable, Optional, Tuple

from cli_task_chain.models.signal import SignalProfile

logger = logging.getLogger(__name__)

NUMBERED_LIST_PATTERN = r"^\d+\."


class CompletionSignalDetector:
    """Classifies keyword occurrences as completion signals or mentions."""

    def __init__(self, profile: Optional[SignalProfile] = None):
        self.profile = profile or SignalProfile()

    def _strip_marker(self, line: str) -> str:
        marker = self.profile.status_marker
        if marker and line.startswith(marker):
            return line[len(marker) :].lstrip()
        return line

    def is_completion_signal(self, line: str, keyword: str) -> bool:
        """Return True only if ``line`` is a genuine completion signal for ``keyword``."""
        trimmed = line.strip()

        for pattern in self.profile.keyword_mentions(keyword):
            if pattern in trimmed:
                return False

        # Fixed patterns are matched outside the keyword itself, so a keyword
        # such as "Step 3 done" can still be signalled on its own line
        surrounding = trimmed.replace(keyword, " ")
        for pattern in self.profile.ignored_patterns:
            if pattern in surrounding:
                return False

        if re.match(NUMBERED_LIST_PATTERN, surrounding.strip()):
            return False

        # "STATUS:" style keywords are emitted with a trailing value
        if keyword.endswith(":"):
            keyword_pattern = f"^{re.escape(keyword)}\\S*$"
            return bool(
                re.match(keyword_pattern, trimmed)
                or re.match(keyword_pattern, self._strip_marker(trimmed))
            )

        marker = self.profile.status_marker
        if trimmed == keyword:
            return True
        if not marker:
            return False
        return trimmed == f"{marker} {keyword}" or (
            trimmed.startswith(marker)
            and trimmed.endswith(keyword)
            and len(trimmed) <= len(marker) + len(keyword) + self.profile.max_marker_gap
        )

    def is_user_input(self, line: str, keyword: str) -> bool:
        """Lines the user typed or quoted, rather than agent output."""
        trimmed = line.strip()
        if self._starts_user_command(trimmed):
            return True
        if any(pattern in line for pattern in self.profile.user_input_patterns):
            return True
        return keyword in line and any(
            prefix in line for prefix in self.profile.user_input_keyword_prefixes
        )

    def _starts_user_command(self, trimmed: str) -> bool:
        return any(trimmed.startswith(prefix) for prefix in self.profile.prompt_prefixes)

    def find_signal(
        self,
        lines: Iterable[Tuple[int, str]],
        keyword: str,
        after_offset: int = -1,
    ) -> Optional[int]:
        """Scan ``(offset, line)`` pairs for a completion signal of ``keyword``.

        Only keyword occurrences at absolute offsets strictly greater than
        ``after_offset`` are considered. Lines of an echoed user command (from
        a prompt-prefixed line until the next status-marker line) are skipped.
        Returns the offset of the last accepted occurrence, or None.
        """
        marker = self.profile.status_marker
        in_user_command = False
        found = None

        for line_offset, line in lines:
            trimmed = line.strip()
            if self._starts_user_command(trimmed):
                in_user_command = True
            if in_user_command and marker and marker in trimmed:
                in_user_command = False

            index = line.rfind(keyword)
            if index < 0:
                continue
            occurrence = line_offset + index
            if occurrence <= after_offset:
                continue

            if in_user_command or self.is_user_input(line, keyword):
                logger.debug(f"Ignoring keyword in user input: {trimmed[:100]!r}")
                continue
            if not self.is_completion_signal(line, keyword):
                logger.debug(f"Keyword mentioned, not signalled: {trimmed[:100]!r}")
                continue

            found = occurrence
        return found
