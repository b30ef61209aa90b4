import sqlite3
from pathlib import Path

import pytest

from codeforge.progress import SCHEMA_VERSION, ProgressStore


def test_save_code_snapshot_and_read_back() -> None:
    store = ProgressStore(":memory:")
    store.save_progress("fe-1-2", "alice", "interface A {")
    snapshot = store.get_snapshot("alice", "fe-1-2")
    assert snapshot is not None
    assert snapshot.code == "interface A {"
    assert snapshot.completed is False
    assert store.get_snapshot("bob", "fe-1-2") is None


def test_save_is_idempotent_upsert() -> None:
    store = ProgressStore(":memory:")
    store.save_progress("l", "u", "a")
    store.save_progress("l", "u", "ab")
    store.save_progress("l", "u", "ab")
    snapshots = store.list_snapshots("u")
    assert len(snapshots) == 1
    assert snapshots[0].code == "ab"


def test_completion_flag_preserves_code() -> None:
    store = ProgressStore(":memory:")
    store.save_progress("l", "u", "abc")
    store.save_progress("l", "u", True)
    store.save_progress("l", "u", "abc ")
    snapshot = store.get_snapshot("u", "l")
    assert snapshot is not None
    assert snapshot.completed is True
    assert snapshot.code == "abc "
    assert store.completed_lesson_ids("u") == {"l"}


def test_completion_without_code() -> None:
    store = ProgressStore(":memory:")
    store.mark_completed("l", "u")
    snapshot = store.get_snapshot("u", "l")
    assert snapshot is not None
    assert snapshot.code is None
    store.save_progress("l", "u", False)
    assert store.completed_lesson_ids("u") == {"l"}
    store.reset_lesson("u", "l")
    assert store.completed_lesson_ids("u") == set()


def test_unsupported_payload_type() -> None:
    store = ProgressStore(":memory:")
    with pytest.raises(ValueError):
        store.save_progress("l", "u", 3)  # type: ignore[arg-type]


def test_reset_lesson_and_delete_user() -> None:
    store = ProgressStore(":memory:")
    store.save_progress("l1", "u", "a")
    store.save_progress("l2", "u", "b")
    store.save_progress("l1", "v", "c")
    assert store.reset_lesson("u", "l1") is True
    assert store.reset_lesson("u", "l1") is False
    assert store.delete_user("u") == 1
    assert store.list_snapshots("u") == []
    assert len(store.list_snapshots("v")) == 1


def test_migration_sets_user_version_and_schema_history() -> None:
    store = ProgressStore(":memory:")
    version = int(store._conn.execute("PRAGMA user_version").fetchone()[0])  # noqa: SLF001
    assert version == SCHEMA_VERSION
    rows = store._conn.execute("SELECT version FROM schema_migrations ORDER BY version").fetchall()  # noqa: SLF001
    assert [int(row["version"]) for row in rows] == [1]


def test_path_database_creation(tmp_path: Path) -> None:
    db_path = tmp_path / "nested" / "progress.db"
    store = ProgressStore(db_path)
    store.save_progress("l", "u", "x")
    store.close()
    assert db_path.exists()

    reopened = ProgressStore(db_path)
    snapshot = reopened.get_snapshot("u", "l")
    assert snapshot is not None
    assert snapshot.code == "x"
    reopened.close()


def test_newer_schema_is_refused(tmp_path: Path) -> None:
    db_path = tmp_path / "future.db"
    conn = sqlite3.connect(db_path)
    try:
        conn.execute(f"PRAGMA user_version = {SCHEMA_VERSION + 1}")
        conn.commit()
    finally:
        conn.close()
    with pytest.raises(RuntimeError):
        ProgressStore(db_path)
