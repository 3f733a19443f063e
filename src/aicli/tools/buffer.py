"""Fixed-capacity buffer of timestamped process output lines."""

from __future__ import annotations

import time
from collections import deque
from collections.abc import Iterator
from dataclasses import dataclass
from typing import Literal

StreamName = Literal["stdout", "stderr"]

#: Default number of lines kept; older lines are evicted first.
DEFAULT_MAX_LINES = 128

#: Default maximum characters stored per line.
DEFAULT_MAX_LINE_LEN = 256


@dataclass(frozen=True)
class TimedLine:
    """One captured line and the monotonic time it was read."""

    at: float
    stream: StreamName
    text: str


class BoundedLineBuffer:
    """FIFO of at most ``max_lines`` entries, each at most ``max_line_len`` long.

    Capacity is a pure count bound: pushing onto a full buffer drops the
    oldest entry.  Nothing here blocks.
    """

    def __init__(
        self,
        max_lines: int = DEFAULT_MAX_LINES,
        max_line_len: int = DEFAULT_MAX_LINE_LEN,
    ) -> None:
        if max_lines < 1:
            msg = f"max_lines must be positive, got {max_lines}"
            raise ValueError(msg)
        self._max_line_len = max_line_len
        self._lines: deque[TimedLine] = deque(maxlen=max_lines)

    def push(self, stream: StreamName, line: str, at: float | None = None) -> None:
        """Store *line*, truncated, stamped with *at* (default: now)."""
        if at is None:
            at = time.monotonic()
        self._lines.append(TimedLine(at, stream, line[: self._max_line_len]))

    def __len__(self) -> int:
        return len(self._lines)

    def __iter__(self) -> Iterator[TimedLine]:
        return iter(self._lines)

    def render(self, origin: float) -> str:
        """Join the lines, each prefixed with its millisecond offset from *origin*.

        Offsets are signed: a line stamped before *origin* shows a negative
        value.
        """
        return "\n".join(
            f"{_offset_ms(origin, line.at):>5}| {line.text}" for line in self._lines
        )


def _offset_ms(origin: float, at: float) -> int:
    # int() truncates toward zero for both signs.
    return int((at - origin) * 1000)
