"""Bounded trailing window over a stream of terminal output."""

from typing import Iterator, List, Optional, Tuple


class OutputBuffer:
    """Keeps the most recent ``capacity`` characters of appended output.

    Offsets are absolute stream positions (characters appended since
    creation), so they stay comparable after old content has been dropped
    from the front.
    """

    def __init__(self, capacity: int):
        if capacity <= 0:
            raise ValueError("Buffer capacity must be positive")
        self.capacity = capacity
        self._text = ""
        # Absolute offset of self._text[0]
        self._origin = 0

    def __len__(self) -> int:
        return len(self._text)

    @property
    def text(self) -> str:
        return self._text

    @property
    def origin(self) -> int:
        return self._origin

    @property
    def end(self) -> int:
        """Absolute offset one past the last buffered character."""
        return self._origin + len(self._text)

    def append(self, chunk: str) -> None:
        if not chunk:
            return
        self._text += chunk
        overflow = len(self._text) - self.capacity
        if overflow > 0:
            self._text = self._text[overflow:]
            self._origin += overflow

    def rfind(self, needle: str) -> Optional[int]:
        """Absolute offset of the last occurrence of ``needle``, or None."""
        index = self._text.rfind(needle)
        if index < 0:
            return None
        return self._origin + index

    def lines(self) -> Iterator[Tuple[int, str]]:
        """Yield ``(absolute_offset, line)`` for every buffered line."""
        offset = self._origin
        for line in self._text.split("\n"):
            yield offset, line
            offset += len(line) + 1


def new_output(previous: str, current: str) -> str:
    """Return the part of ``current`` not already seen at the end of ``previous``.

    Pane captures overlap: a scrolled screen repeats the tail of the previous
    capture at its head. The longest run of trailing lines of ``previous``
    that matches the leading lines of ``current`` is dropped. A capture that
    is identical to the previous one yields no new output.
    """
    if not previous:
        return current
    if current == previous:
        return ""

    prev_lines: List[str] = previous.split("\n")
    cur_lines: List[str] = current.split("\n")
    max_overlap = min(len(prev_lines), len(cur_lines))
    for size in range(max_overlap, 0, -1):
        if prev_lines[-size:] == cur_lines[:size]:
            remainder = cur_lines[size:]
            return "\n" + "\n".join(remainder) if remainder else ""
    return "\n" + current
