"""Completion-signal heuristic configuration.

The substrings below were tuned against the output formatting of one specific
agent. They are data, not logic: each provider ships its own ``SignalProfile``
so other agents' status markers and prompt characters can be supported
without touching the detector or the monitor.
"""

from typing import Tuple

from pydantic import BaseModel, ConfigDict, Field

# Substrings that mark a line as planning / instructional text
DEFAULT_IGNORED_PATTERNS: Tuple[str, ...] = (
    "☐",
    "□",
    "⎿",
    "Document",
    "signal completion",
    "Execute step",
    "Step ",
    "execute it",
    "plan:",
    "todo list",
    "Create",
    "Analyze",
    "then execute",
    ": Say",
    ". Say",
    "Let me",
    "I need to",
    "I will",
    "I should",
)

# Templates combined with the awaited keyword ("say DONE", "with DONE", ...)
DEFAULT_KEYWORD_PATTERNS: Tuple[str, ...] = (
    "with {keyword}",
    "and {keyword}",
    "using {keyword}",
    "say {keyword}",
    "Say {keyword}",
    "type {keyword}",
)

# Phrases marking a line as something the user typed or quoted
DEFAULT_USER_INPUT_PATTERNS: Tuple[str, ...] = (
    "plz say",
    "please say",
    "type:",
)

# Prefixes that only count as user input when the keyword is on the same line
DEFAULT_USER_INPUT_KEYWORD_PREFIXES: Tuple[str, ...] = (
    "Todo:",
    "Task:",
    "Given the following",
)


class SignalProfile(BaseModel):
    """Output conventions of one agent, consumed by the signal detector."""

    model_config = ConfigDict(frozen=True)

    status_marker: str = Field("⏺", description="Marker the agent prints before a response line")
    prompt_prefixes: Tuple[str, ...] = Field(
        (">",), description="Line prefixes that start an echoed user command"
    )
    ignored_patterns: Tuple[str, ...] = DEFAULT_IGNORED_PATTERNS
    keyword_patterns: Tuple[str, ...] = DEFAULT_KEYWORD_PATTERNS
    user_input_patterns: Tuple[str, ...] = DEFAULT_USER_INPUT_PATTERNS
    user_input_keyword_prefixes: Tuple[str, ...] = DEFAULT_USER_INPUT_KEYWORD_PREFIXES
    # Extra characters tolerated between the status marker and the keyword
    max_marker_gap: int = Field(9, ge=0)

    def keyword_mentions(self, keyword: str) -> Tuple[str, ...]:
        """Keyword-specific "mention, not signal" substrings ("say DONE", ...)."""
        return tuple(template.format(keyword=keyword) for template in self.keyword_patterns)
