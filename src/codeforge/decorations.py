"""Decoration layout for confirmed, pending, and error regions of a target."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from enum import Enum

from .models import InstructorComment
from .text_metrics import LineTable, clamp, split_offset


class RegionKind(str, Enum):
    """Display role of a decoration region."""

    CONFIRMED = "confirmed"
    PENDING = "pending"
    ERROR = "error"
    ANNOTATION = "annotation"


@dataclass(frozen=True)
class ErrorSignal:
    """Transient strict-mode rejection marker."""

    at_offset: int
    expires_at: float

    def expired(self, now: float) -> bool:
        """Return whether the signal has lapsed at now."""
        return now >= self.expires_at


@dataclass(frozen=True)
class DecorationRegion:
    """One offset range over target text with a display role."""

    kind: RegionKind
    start: int
    end: int
    text: str = ""


def plan_regions(
    matched: int,
    strip_index: tuple[int, ...],
    target_length: int,
    error_signal: ErrorSignal | None = None,
    now: float | None = None,
    *,
    line_table: LineTable | None = None,
) -> list[DecorationRegion]:
    """Partition the target into confirmed/pending regions plus an optional error overlay.

    Confirmed and pending always cover ``[0, target_length)`` exactly. The error
    region spans the line holding ``error_signal.at_offset`` and is emitted only
    while the signal is live at ``now`` (a missing ``now`` means live). Without a
    ``line_table`` the error region falls back to the single offending offset.
    """
    target_length = max(0, target_length)
    split = split_offset(matched, strip_index, target_length)
    regions: list[DecorationRegion] = []
    if split > 0:
        regions.append(DecorationRegion(kind=RegionKind.CONFIRMED, start=0, end=split))
    if split < target_length:
        regions.append(DecorationRegion(kind=RegionKind.PENDING, start=split, end=target_length))

    if error_signal is not None and (now is None or not error_signal.expired(now)):
        at = clamp(error_signal.at_offset, 0, target_length)
        if line_table is not None:
            start, end = line_table.line_span(at)
        else:
            start, end = at, min(at + 1, target_length)
        regions.append(DecorationRegion(kind=RegionKind.ERROR, start=start, end=end))
    return regions


def plan_annotations(
    comments: Iterable[InstructorComment], buffer_text: str, target_lines: LineTable
) -> list[DecorationRegion]:
    """Place instructor comments on target lines the buffer has reached."""
    line_count = buffer_text.count("\n") + 1
    regions: list[DecorationRegion] = []
    for comment in comments:
        if comment.line > line_count or comment.line > target_lines.line_count:
            continue
        anchor = target_lines.line_start(comment.line)
        regions.append(DecorationRegion(kind=RegionKind.ANNOTATION, start=anchor, end=anchor, text=comment.text))
    return regions
