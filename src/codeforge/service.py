"""Application service for lessons, typing sessions, and saved progress."""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from .content_loader import load_lessons
from .models import Lesson
from .player import LessonPlayer, PlayerConfig
from .progress import DEFAULT_USER_ID, ProgressStore
from .reporter import ProgressFn, ProgressReporter

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LessonStatus:
    """Per-lesson progress summary for one user."""

    lesson: Lesson
    stage: str
    has_saved_code: bool


class PlayerService:
    """Coordinates lesson content, the typing engine, and progress storage."""

    def __init__(
        self,
        db_path: Path | str,
        user_id: str = DEFAULT_USER_ID,
        lessons: dict[str, Lesson] | None = None,
        config: PlayerConfig | None = None,
        clock: Callable[[], float] = time.monotonic,
        on_progress: ProgressFn | None = None,
    ) -> None:
        """Initialize service with database path and lesson catalog."""
        self.lessons = lessons if lessons is not None else load_lessons()
        self.progress = ProgressStore(db_path)
        self.user_id = user_id
        self.config = config or PlayerConfig()
        self.completed_this_session: list[str] = []
        reporter = ProgressReporter(
            user_id=user_id,
            save=self.progress.save_progress,
            on_progress=on_progress,
            on_complete=self._lesson_completed,
            clock=clock,
            debounce_seconds=self.config.save_debounce_seconds,
            payload_mode=self.config.payload_mode,
        )
        self.player = LessonPlayer(reporter, config=self.config, clock=clock)

    def list_lessons(self) -> list[Lesson]:
        """Return lessons in curriculum order."""
        return list(self.lessons.values())

    def get_lesson(self, lesson_id: str) -> Lesson | None:
        """Get lesson by id."""
        return self.lessons.get(lesson_id)

    def open_lesson(self, lesson_id: str, strict: bool | None = None) -> LessonPlayer:
        """Load a lesson into the player, resuming saved code when present."""
        lesson = self.lessons[lesson_id]
        starting = lesson.starting_code
        snapshot = self.progress.get_snapshot(self.user_id, lesson_id)
        if snapshot is not None and snapshot.code is not None:
            starting = snapshot.code
        self.player.load_lesson(
            lesson.id,
            lesson.target_code,
            starting_text=starting,
            comments=lesson.comments,
            strict=strict,
        )
        return self.player

    def lesson_statuses(self) -> list[LessonStatus]:
        """Return progress stage for every lesson."""
        snapshots = {snapshot.lesson_id: snapshot for snapshot in self.progress.list_snapshots(self.user_id)}
        statuses: list[LessonStatus] = []
        for lesson in self.lessons.values():
            snapshot = snapshots.get(lesson.id)
            if snapshot is None:
                stage = "new"
            elif snapshot.completed:
                stage = "completed"
            else:
                stage = "started"
            statuses.append(
                LessonStatus(
                    lesson=lesson,
                    stage=stage,
                    has_saved_code=snapshot is not None and snapshot.code is not None,
                )
            )
        return statuses

    def completed_lesson_ids(self) -> set[str]:
        """Return completed lesson ids for the current user."""
        return self.progress.completed_lesson_ids(self.user_id)

    def reset_lesson(self, lesson_id: str) -> bool:
        """Forget saved progress for a lesson and reload it if it is open."""
        if lesson_id not in self.lessons:
            raise KeyError(lesson_id)
        removed = self.progress.reset_lesson(self.user_id, lesson_id)
        if self.player.lesson_id == lesson_id:
            self.open_lesson(lesson_id, strict=self.player.strict)
        return removed

    def poll(self, now: float | None = None) -> None:
        """Advance player timers."""
        self.player.poll(now)

    def _lesson_completed(self, lesson_id: str) -> None:
        """Persist the completion flag; failures never interrupt typing."""
        self.completed_this_session.append(lesson_id)
        try:
            self.progress.mark_completed(lesson_id, self.user_id)
        except Exception:
            logger.warning("Could not record completion for lesson %s", lesson_id, exc_info=True)

    def close(self) -> None:
        """Flush pending saves and close resources."""
        self.player.close()
        self.progress.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort cleanup for test/process teardown."""
        try:
            self.progress.close()
        except Exception:
            pass
