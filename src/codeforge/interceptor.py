"""Strict-mode keystroke acceptor that only lets the expected target text through."""

from __future__ import annotations

import time
from bisect import bisect_left
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum

from .decorations import ErrorSignal
from .matching import TargetText
from .text_metrics import clamp, indentation_run, resume_offset

ERROR_FLASH_SECONDS = 0.4
MAX_TAB_SPACES = 4
MIN_TAB_SPACES = 2

NAVIGATION_KEYS = frozenset({"ArrowLeft", "ArrowRight", "ArrowUp", "ArrowDown", "Home", "End", "PageUp", "PageDown"})
NAMED_CONTENT_KEYS = frozenset({"Enter", "Tab", "Backspace"})

Clock = Callable[[], float]


class InterceptorState(str, Enum):
    """Strict-mode acceptor state."""

    ACCEPTING = "accepting"
    FLASHING_ERROR = "flashing-error"


class KeyClass(str, Enum):
    """Coarse keystroke category."""

    NAVIGATION = "navigation"
    SHORTCUT = "shortcut"
    CONTENT = "content"
    OTHER = "other"


class KeyOutcome(str, Enum):
    """What the host should do with a keystroke."""

    ACCEPTED = "accepted"
    REJECTED = "rejected"
    PASS_THROUGH = "pass-through"
    BLOCKED = "blocked"
    IGNORED = "ignored"


@dataclass(frozen=True)
class KeyEvent:
    """One raw keystroke from the editing surface."""

    key: str
    ctrl: bool = False
    alt: bool = False
    meta: bool = False


@dataclass(frozen=True)
class KeyResult:
    """Decision for one keystroke; ``inserted`` is the text the host must append."""

    outcome: KeyOutcome
    inserted: str = ""


def classify_key(event: KeyEvent) -> KeyClass:
    """Classify a keystroke as navigation, shortcut, content, or other."""
    if event.ctrl or event.alt or event.meta:
        return KeyClass.SHORTCUT
    if event.key in NAVIGATION_KEYS:
        return KeyClass.NAVIGATION
    if event.key in NAMED_CONTENT_KEYS:
        return KeyClass.CONTENT
    if len(event.key) == 1 and event.key.isprintable():
        return KeyClass.CONTENT
    return KeyClass.OTHER


class InputInterceptor:
    """Accept or reject keystrokes against the next expected target character.

    The accepted buffer is always ``target.text[:offset]``. Leading indentation
    of each line is filled in automatically once the line is reached, so the
    learner only types the newline. Mismatches never touch the buffer; they
    raise a short-lived :class:`ErrorSignal` that :meth:`poll` clears once the
    flash delay has passed.
    """

    def __init__(
        self,
        target: TargetText,
        clock: Clock = time.monotonic,
        flash_seconds: float = ERROR_FLASH_SECONDS,
    ) -> None:
        """Initialize the acceptor at the start of target."""
        self.target = target
        self._clock = clock
        self._flash_seconds = flash_seconds
        self.offset = 0
        self.state = InterceptorState.ACCEPTING
        self.error_signal: ErrorSignal | None = None
        self.resync("")

    @property
    def text(self) -> str:
        """Return the accepted buffer."""
        return self.target.text[: self.offset]

    @property
    def matched_chars(self) -> int:
        """Return how many non-whitespace target characters are accepted."""
        return bisect_left(self.target.strip_index, self.offset)

    @property
    def completed(self) -> bool:
        """Return whether the whole target has been typed."""
        total = self.target.total_chars
        if total == 0:
            return False
        return self.matched_chars >= total or self.offset >= len(self.target)

    def expected_char(self) -> str | None:
        """Return the next target character, or None at the end."""
        if self.offset >= len(self.target):
            return None
        return self.target.text[self.offset]

    def resync(self, user_text: str) -> None:
        """Re-derive the accepted offset from an arbitrary buffer snapshot."""
        matched = self.target.match(user_text).matched_chars
        self.offset = clamp(resume_offset(matched, self.target.strip_index), 0, len(self.target))
        self._clear_error()
        self._skip_line_indentation()

    def press(self, event: KeyEvent, now: float | None = None) -> KeyResult:
        """Apply one keystroke and report what the host must do with it."""
        if now is None:
            now = self._clock()
        self.poll(now)

        key_class = classify_key(event)
        if key_class in (KeyClass.NAVIGATION, KeyClass.SHORTCUT):
            return KeyResult(KeyOutcome.PASS_THROUGH)
        if key_class is KeyClass.OTHER:
            return KeyResult(KeyOutcome.BLOCKED)
        if self.target.total_chars == 0 or self.completed:
            return KeyResult(KeyOutcome.IGNORED)

        start = self.offset
        if event.key == "Tab":
            step = self._tab_step()
            if step == 0:
                return self._reject(now)
            self.offset += step
            return self._accept(start)

        char = "\n" if event.key == "Enter" else event.key
        if event.key == "Backspace" or char != self.expected_char():
            return self._reject(now)
        self.offset += 1
        if char == "\n":
            self._skip_line_indentation()
        return self._accept(start)

    def poll(self, now: float | None = None) -> bool:
        """Clear an expired error signal; return whether one was cleared."""
        if self.error_signal is None:
            return False
        if now is None:
            now = self._clock()
        if not self.error_signal.expired(now):
            return False
        self._clear_error()
        return True

    def _tab_step(self) -> int:
        """Return how far Tab advances from the current offset, 0 when not at indentation."""
        expected = self.expected_char()
        if expected == "\t":
            return 1
        run = indentation_run(self.target.text, self.offset)
        spaces = 0
        while spaces < min(run, MAX_TAB_SPACES) and self.target.text[self.offset + spaces] == " ":
            spaces += 1
        if spaces >= MIN_TAB_SPACES:
            return spaces
        return 0

    def _skip_line_indentation(self) -> None:
        if self.offset == 0 or self.target.text[self.offset - 1] == "\n":
            self.offset += indentation_run(self.target.text, self.offset)

    def _accept(self, start: int) -> KeyResult:
        self._clear_error()
        return KeyResult(KeyOutcome.ACCEPTED, inserted=self.target.text[start : self.offset])

    def _reject(self, now: float) -> KeyResult:
        self.error_signal = ErrorSignal(at_offset=self.offset, expires_at=now + self._flash_seconds)
        self.state = InterceptorState.FLASHING_ERROR
        return KeyResult(KeyOutcome.REJECTED)

    def _clear_error(self) -> None:
        self.error_signal = None
        self.state = InterceptorState.ACCEPTING
