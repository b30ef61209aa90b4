"""Progress emission, one-shot completion, and debounced persistence."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass

from .matching import MatchState

logger = logging.getLogger(__name__)

SAVE_DEBOUNCE_SECONDS = 1.0
PAYLOAD_MODES = ("code", "completion")

SaveFn = Callable[[str, str, str | bool], None]
ProgressFn = Callable[[int, int], None]
CompleteFn = Callable[[str], None]


@dataclass(frozen=True)
class PendingSave:
    """Latest snapshot waiting for the debounce deadline."""

    lesson_id: str
    generation: int
    payload: str | bool
    due_at: float


class ProgressReporter:
    """Forward match progress to the host and persist the latest snapshot lazily."""

    def __init__(
        self,
        user_id: str,
        save: SaveFn,
        on_progress: ProgressFn | None = None,
        on_complete: CompleteFn | None = None,
        clock: Callable[[], float] = time.monotonic,
        debounce_seconds: float = SAVE_DEBOUNCE_SECONDS,
        payload_mode: str = "code",
    ) -> None:
        """Initialize reporter callbacks and timing."""
        if payload_mode not in PAYLOAD_MODES:
            raise ValueError(f"Unknown payload mode: {payload_mode}")
        self.user_id = user_id
        self._save = save
        self._on_progress = on_progress
        self._on_complete = on_complete
        self._clock = clock
        self._debounce_seconds = debounce_seconds
        self._payload_mode = payload_mode
        self.lesson_id: str | None = None
        self.generation = 0
        self.has_notified_completion = False
        self.pending: PendingSave | None = None

    def reset(self, lesson_id: str) -> None:
        """Drop all per-lesson state and start a new session generation."""
        self.lesson_id = lesson_id
        self.generation += 1
        self.has_notified_completion = False
        self.pending = None

    def report(self, state: MatchState, snapshot: str, now: float | None = None) -> None:
        """Emit progress, latch completion, and re-arm the save deadline."""
        if self.lesson_id is None:
            return
        if now is None:
            now = self._clock()
        if self._on_progress is not None:
            self._on_progress(state.matched_chars, state.total_chars)
        if state.completed and not self.has_notified_completion:
            self.has_notified_completion = True
            if self._on_complete is not None:
                self._on_complete(self.lesson_id)

        payload: str | bool = snapshot if self._payload_mode == "code" else state.completed
        self.pending = PendingSave(
            lesson_id=self.lesson_id,
            generation=self.generation,
            payload=payload,
            due_at=now + self._debounce_seconds,
        )

    def poll(self, now: float | None = None) -> bool:
        """Persist the pending snapshot once its deadline passed; return whether a save ran."""
        pending = self.pending
        if pending is None:
            return False
        if now is None:
            now = self._clock()
        if now < pending.due_at:
            return False
        return self._send(pending)

    def flush(self) -> bool:
        """Persist the pending snapshot immediately."""
        if self.pending is None:
            return False
        return self._send(self.pending)

    def _send(self, pending: PendingSave) -> bool:
        self.pending = None
        if pending.generation != self.generation or pending.lesson_id != self.lesson_id:
            logger.debug("Dropping stale save for lesson %s", pending.lesson_id)
            return False
        try:
            self._save(pending.lesson_id, self.user_id, pending.payload)
        except Exception:
            logger.warning("Failed to save progress for lesson %s", pending.lesson_id, exc_info=True)
            return False
        return True
