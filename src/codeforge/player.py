"""Per-player typing engine that runs one lesson at a time in lenient or strict mode."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from .decorations import DecorationRegion, ErrorSignal, plan_annotations, plan_regions
from .interceptor import ERROR_FLASH_SECONDS, InputInterceptor, KeyEvent, KeyOutcome, KeyResult
from .matching import MatchState, TargetText
from .models import InstructorComment
from .reporter import SAVE_DEBOUNCE_SECONDS, ProgressReporter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class PlayerConfig:
    """Timing and mode settings for a lesson player."""

    error_flash_seconds: float = ERROR_FLASH_SECONDS
    save_debounce_seconds: float = SAVE_DEBOUNCE_SECONDS
    payload_mode: str = "code"
    strict: bool = False


class LessonPlayer:
    """Drive match state, decorations, and progress reporting for the loaded lesson."""

    def __init__(
        self,
        reporter: ProgressReporter,
        config: PlayerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        """Initialize an idle player with no lesson loaded."""
        self.config = config or PlayerConfig()
        self.reporter = reporter
        self._clock = clock
        self.lesson_id: str | None = None
        self.strict = self.config.strict
        self.target = TargetText("")
        self.comments: tuple[InstructorComment, ...] = ()
        self.text = ""
        self.state = MatchState(matched_chars=0, total_chars=0)
        self._interceptor: InputInterceptor | None = None

    @property
    def error_signal(self) -> ErrorSignal | None:
        """Return the live strict-mode error signal, if any."""
        if self._interceptor is None:
            return None
        return self._interceptor.error_signal

    @property
    def offset(self) -> int:
        """Return the strict-mode accepted offset, or the first unmatched offset in lenient mode."""
        if self._interceptor is not None:
            return self._interceptor.offset
        return self.target.split_offset(self.state.matched_chars)

    def load_lesson(
        self,
        lesson_id: str,
        target_text: str,
        starting_text: str = "",
        comments: Iterable[InstructorComment] = (),
        strict: bool | None = None,
    ) -> MatchState:
        """Reset every per-lesson state and start a new lesson."""
        self.reporter.reset(lesson_id)
        self.lesson_id = lesson_id
        self.strict = self.config.strict if strict is None else strict
        self.target = TargetText(target_text)
        self.comments = tuple(comments)
        if self.strict:
            self._interceptor = InputInterceptor(
                self.target, clock=self._clock, flash_seconds=self.config.error_flash_seconds
            )
            self._interceptor.resync(starting_text)
            self.text = self._interceptor.text
        else:
            self._interceptor = None
            self.text = starting_text
        self.state = self.target.match(self.text)
        if self.target.total_chars == 0:
            logger.debug("Lesson %s has no characters to type; it cannot be completed", lesson_id)
        return self.state

    def update_text(self, text: str, now: float | None = None) -> MatchState:
        """Accept a full buffer snapshot from the host."""
        if self._interceptor is not None:
            self._interceptor.resync(text)
            text = self._interceptor.text
        return self._changed(text, now)

    def press(self, event: KeyEvent, now: float | None = None) -> KeyResult:
        """Route one keystroke through the strict-mode acceptor."""
        if self._interceptor is None:
            return KeyResult(KeyOutcome.PASS_THROUGH)
        result = self._interceptor.press(event, now)
        if result.outcome is KeyOutcome.ACCEPTED:
            self._changed(self._interceptor.text, now)
        return result

    def regions(self, now: float | None = None) -> list[DecorationRegion]:
        """Return the decoration layout for the current state."""
        if now is None:
            now = self._clock()
        return plan_regions(
            self.state.matched_chars,
            self.target.strip_index,
            len(self.target),
            self.error_signal,
            now,
            line_table=self.target.lines,
        )

    def annotations(self) -> list[DecorationRegion]:
        """Return instructor comments reached by the current buffer."""
        return plan_annotations(self.comments, self.text, self.target.lines)

    def poll(self, now: float | None = None) -> None:
        """Fire due timers: error-flash expiry and the debounced save."""
        if now is None:
            now = self._clock()
        if self._interceptor is not None:
            self._interceptor.poll(now)
        self.reporter.poll(now)

    def close(self) -> None:
        """Persist any pending snapshot."""
        self.reporter.flush()

    def _changed(self, text: str, now: float | None) -> MatchState:
        self.text = text
        self.state = self.target.match(text)
        self.reporter.report(self.state, text, now)
        return self.state
