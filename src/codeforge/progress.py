"""SQLite persistence for per-lesson typing progress."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass
from datetime import UTC, datetime
from pathlib import Path

SCHEMA_VERSION = 1
DEFAULT_USER_ID = "default_user"


@dataclass(frozen=True)
class LessonSnapshot:
    """Saved progress for one user and lesson."""

    user_id: str
    lesson_id: str
    code: str | None
    completed: bool
    updated_at: str


class ProgressStore:
    """Database access layer for lesson progress."""

    def __init__(self, db_path: Path | str) -> None:
        """Initialize database and schema."""
        if isinstance(db_path, Path):
            db_path.parent.mkdir(parents=True, exist_ok=True)
            target = str(db_path)
        else:
            target = db_path
        self._conn = sqlite3.connect(target)
        self._conn.row_factory = sqlite3.Row
        self._apply_migrations()

    def _apply_migrations(self) -> None:
        """Apply forward-only schema migrations to latest version."""
        current = int(self._conn.execute("PRAGMA user_version").fetchone()[0])
        if current > SCHEMA_VERSION:
            raise RuntimeError(f"Database schema version {current} is newer than supported {SCHEMA_VERSION}.")

        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS schema_migrations (
                    version INTEGER PRIMARY KEY,
                    applied_at TEXT NOT NULL
                )
                """)

        for version in range(current + 1, SCHEMA_VERSION + 1):
            if version == 1:
                self._migrate_to_v1()
            with self._conn:
                self._conn.execute(f"PRAGMA user_version = {version}")
                self._conn.execute(
                    "INSERT OR REPLACE INTO schema_migrations (version, applied_at) VALUES (?, ?)",
                    (version, datetime.now(UTC).isoformat()),
                )

    def _migrate_to_v1(self) -> None:
        """Create the lesson progress table."""
        with self._conn:
            self._conn.execute("""
                CREATE TABLE IF NOT EXISTS lesson_progress (
                    user_id TEXT NOT NULL,
                    lesson_id TEXT NOT NULL,
                    code TEXT,
                    completed INTEGER NOT NULL DEFAULT 0,
                    updated_at TEXT NOT NULL,
                    PRIMARY KEY (user_id, lesson_id)
                )
                """)

    def save_progress(self, lesson_id: str, user_id: str, payload: str | bool) -> None:
        """Upsert a code snapshot (str) or a completion flag (bool); completion only clears on reset."""
        if isinstance(payload, bool):
            self._set_completed(lesson_id, user_id, payload)
            return
        if not isinstance(payload, str):
            raise ValueError(f"Unsupported progress payload type: {type(payload).__name__}")
        now = datetime.now(UTC).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO lesson_progress (user_id, lesson_id, code, completed, updated_at)
                VALUES (?, ?, ?, 0, ?)
                ON CONFLICT(user_id, lesson_id) DO UPDATE SET
                    code = excluded.code,
                    updated_at = excluded.updated_at
                """,
                (user_id, lesson_id, payload, now),
            )

    def mark_completed(self, lesson_id: str, user_id: str) -> None:
        """Set the lesson completed flag."""
        self._set_completed(lesson_id, user_id, True)

    def _set_completed(self, lesson_id: str, user_id: str, completed: bool) -> None:
        now = datetime.now(UTC).isoformat()
        with self._conn:
            self._conn.execute(
                """
                INSERT INTO lesson_progress (user_id, lesson_id, code, completed, updated_at)
                VALUES (?, ?, NULL, ?, ?)
                ON CONFLICT(user_id, lesson_id) DO UPDATE SET
                    completed = MAX(completed, excluded.completed),
                    updated_at = excluded.updated_at
                """,
                (user_id, lesson_id, int(completed), now),
            )

    def get_snapshot(self, user_id: str, lesson_id: str) -> LessonSnapshot | None:
        """Return saved progress for one lesson if present."""
        row = self._conn.execute(
            """
            SELECT user_id, lesson_id, code, completed, updated_at
            FROM lesson_progress
            WHERE user_id = ? AND lesson_id = ?
            """,
            (user_id, lesson_id),
        ).fetchone()
        if row is None:
            return None
        return _snapshot_from_row(row)

    def list_snapshots(self, user_id: str) -> list[LessonSnapshot]:
        """Return all saved lessons for a user, most recent first."""
        rows = self._conn.execute(
            """
            SELECT user_id, lesson_id, code, completed, updated_at
            FROM lesson_progress
            WHERE user_id = ?
            ORDER BY updated_at DESC, lesson_id ASC
            """,
            (user_id,),
        ).fetchall()
        return [_snapshot_from_row(row) for row in rows]

    def completed_lesson_ids(self, user_id: str) -> set[str]:
        """Return completed lesson ids."""
        rows = self._conn.execute(
            "SELECT lesson_id FROM lesson_progress WHERE user_id = ? AND completed = 1",
            (user_id,),
        ).fetchall()
        return {str(row["lesson_id"]) for row in rows}

    def reset_lesson(self, user_id: str, lesson_id: str) -> bool:
        """Delete saved progress for one lesson."""
        with self._conn:
            cursor = self._conn.execute(
                "DELETE FROM lesson_progress WHERE user_id = ? AND lesson_id = ?",
                (user_id, lesson_id),
            )
        return cursor.rowcount > 0

    def delete_user(self, user_id: str) -> int:
        """Delete all progress for a user and return removed row count."""
        with self._conn:
            cursor = self._conn.execute("DELETE FROM lesson_progress WHERE user_id = ?", (user_id,))
        return cursor.rowcount

    def close(self) -> None:
        """Close db connection."""
        self._conn.close()

    def __del__(self) -> None:  # pragma: no cover
        """Best-effort connection cleanup."""
        try:
            self.close()
        except Exception:
            pass


def _snapshot_from_row(row: sqlite3.Row) -> LessonSnapshot:
    """Build a snapshot from a lesson_progress row."""
    return LessonSnapshot(
        user_id=str(row["user_id"]),
        lesson_id=str(row["lesson_id"]),
        code=str(row["code"]) if row["code"] is not None else None,
        completed=bool(row["completed"]),
        updated_at=str(row["updated_at"]),
    )
