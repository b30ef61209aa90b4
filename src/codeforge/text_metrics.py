"""Offset, line/column, and whitespace projections over target text."""

from __future__ import annotations

from bisect import bisect_right
from dataclasses import dataclass


@dataclass(frozen=True)
class Position:
    """1-based line/column position in a text."""

    line: int
    column: int


class LineTable:
    """Precomputed line starts for repeated offset lookups over one text."""

    def __init__(self, text: str) -> None:
        """Build the line table for text."""
        self.length = len(text)
        starts = [0]
        for index, char in enumerate(text):
            if char == "\n":
                starts.append(index + 1)
        self._starts = tuple(starts)

    @property
    def line_count(self) -> int:
        """Return the number of lines, counting a trailing empty line."""
        return len(self._starts)

    def position(self, offset: int) -> Position:
        """Return the line/column containing offset."""
        offset = clamp(offset, 0, self.length)
        line_index = bisect_right(self._starts, offset) - 1
        return Position(line=line_index + 1, column=offset - self._starts[line_index] + 1)

    def line_span(self, offset: int) -> tuple[int, int]:
        """Return (start, end) of the line containing offset, excluding its newline."""
        offset = clamp(offset, 0, self.length)
        line_index = bisect_right(self._starts, offset) - 1
        start = self._starts[line_index]
        if line_index + 1 < len(self._starts):
            end = self._starts[line_index + 1] - 1
        else:
            end = self.length
        return (start, end)

    def line_start(self, line: int) -> int:
        """Return the offset where a 1-based line begins."""
        line_index = clamp(line, 1, len(self._starts)) - 1
        return self._starts[line_index]


def clamp(value: int, low: int, high: int) -> int:
    """Clamp value into [low, high]."""
    if high < low:
        return low
    return max(low, min(value, high))


def offset_to_position(text: str, offset: int) -> Position:
    """Return the 1-based line/column for an offset in text."""
    return LineTable(text).position(offset)


def normalize_newlines(text: str) -> str:
    """Convert CRLF/CR line endings to LF."""
    return text.replace("\r\n", "\n").replace("\r", "\n")


def strip_whitespace(text: str) -> str:
    """Return text with every whitespace character removed."""
    return "".join(char for char in text if not char.isspace())


def build_strip_index(text: str) -> tuple[int, ...]:
    """Return the absolute offset of each non-whitespace character in text."""
    return tuple(index for index, char in enumerate(text) if not char.isspace())


def split_offset(matched: int, strip_index: tuple[int, ...], target_length: int) -> int:
    """Translate a matched non-whitespace count into the first unmatched offset.

    The result is the offset of the next non-whitespace character still to be
    typed, or ``target_length`` once every non-whitespace character matched.
    """
    matched = clamp(matched, 0, len(strip_index))
    if matched >= len(strip_index):
        return target_length
    return clamp(strip_index[matched], 0, target_length)


def resume_offset(matched: int, strip_index: tuple[int, ...]) -> int:
    """Return the offset just after the last matched non-whitespace character."""
    matched = clamp(matched, 0, len(strip_index))
    if matched == 0:
        return 0
    return strip_index[matched - 1] + 1


def indentation_run(text: str, offset: int) -> int:
    """Return the length of the space/tab run starting at offset."""
    end = clamp(offset, 0, len(text))
    while end < len(text) and text[end] in " \t":
        end += 1
    return end - clamp(offset, 0, len(text))
