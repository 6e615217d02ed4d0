"""
Map 1-indexed tool locations onto 0-indexed document offsets.

The toolchain reports a start position but no span length, so a located
diagnostic underlines from the reported column to the end of its line.
"""

from __future__ import annotations

from dataclasses import dataclass


@dataclass(frozen=True)
class OffsetRange:
    """Half-open character range ``[start, end)`` into a document."""

    start: int
    end: int


NO_LOCATION = OffsetRange(0, 0)


def _split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only; a final terminator does not open a new line."""
    lines = text.split("\n")
    if lines[-1] == "":
        lines.pop()
    return lines


def offset_range(text: str, line: int | None, column: int | None) -> OffsetRange:
    """Convert a 1-indexed (line, column) into an OffsetRange over ``text``.

    - line 0 / None: zero-length range at the document start
    - line past EOF: the last character of the document
    - column past the end of its line: clamped to the line end
    """
    if not line or line < 1:
        return NO_LOCATION

    col = max(column or 1, 1)
    line_start = 0
    for number, raw in enumerate(_split_lines(text), start=1):
        if number == line:
            length = len(raw) - 1 if raw.endswith("\r") else len(raw)
            start = line_start + min(col - 1, length)
            end = line_start + length
            if end <= start:
                end = min(start + 1, len(text))
            return OffsetRange(start, end)
        # +1 for the "\n" that split() consumed
        line_start += len(raw) + 1

    if not text:
        return NO_LOCATION
    return OffsetRange(len(text) - 1, len(text))


def position_at(text: str, offset: int) -> tuple[int, int]:
    """Return the 0-indexed (line, character) for a character offset."""
    offset = max(0, min(offset, len(text)))
    before = text[:offset]
    line = before.count("\n")
    character = offset - (before.rfind("\n") + 1)
    return line, character
