"""Whitespace-insensitive prefix matching against a lesson target."""

from __future__ import annotations

from dataclasses import dataclass, field

from .text_metrics import LineTable, build_strip_index, normalize_newlines, split_offset, strip_whitespace


@dataclass(frozen=True)
class MatchState:
    """How much of the target the learner has reproduced."""

    matched_chars: int
    total_chars: int

    @property
    def completed(self) -> bool:
        """Return whether every target character matched; empty targets never complete."""
        return self.total_chars > 0 and self.matched_chars >= self.total_chars


@dataclass(frozen=True)
class TargetText:
    """Immutable target text with its derived per-lesson indices."""

    text: str
    stripped: str = field(init=False)
    strip_index: tuple[int, ...] = field(init=False)
    lines: LineTable = field(init=False, repr=False, compare=False)

    def __post_init__(self) -> None:
        """Derive the stripped projection, strip index, and line table once."""
        object.__setattr__(self, "text", normalize_newlines(self.text))
        object.__setattr__(self, "stripped", strip_whitespace(self.text))
        object.__setattr__(self, "strip_index", build_strip_index(self.text))
        object.__setattr__(self, "lines", LineTable(self.text))

    def __len__(self) -> int:
        return len(self.text)

    @property
    def total_chars(self) -> int:
        """Return the number of non-whitespace characters to reproduce."""
        return len(self.stripped)

    def match(self, user_text: str) -> MatchState:
        """Match user text against this target."""
        return compute_match(user_text, self.stripped)

    def split_offset(self, matched: int) -> int:
        """Return the first unmatched offset for a matched count."""
        return split_offset(matched, self.strip_index, len(self.text))


def compute_match(user_text: str, target_stripped: str) -> MatchState:
    """Count leading non-whitespace characters of user text that match the target."""
    total = len(target_stripped)
    matched = 0
    for char in user_text:
        if char.isspace():
            continue
        if matched >= total or char != target_stripped[matched]:
            break
        matched += 1
    return MatchState(matched_chars=matched, total_chars=total)
