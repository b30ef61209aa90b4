"""Load declarative lesson content from bundled JSON resources."""

from __future__ import annotations

import json
from importlib import resources
from pathlib import Path
from typing import Any

from .models import InstructorComment, Lesson
from .text_metrics import normalize_newlines

CONTENT_PACKAGE = "codeforge.content.lessons"
LESSON_TYPES = {"frontend", "backend"}


def _comment_from_dict(lesson_id: str, raw: dict[str, Any]) -> InstructorComment:
    """Build an instructor comment from raw JSON content."""
    try:
        line = int(raw["line"])
    except (KeyError, TypeError, ValueError):
        raise ValueError(f"Lesson '{lesson_id}' has a comment without a valid line.") from None
    if line < 1:
        raise ValueError(f"Lesson '{lesson_id}' has a comment on line {line}; lines start at 1.")
    return InstructorComment(line=line, text=str(raw.get("text", "")).strip())


def _lesson_from_dict(module: dict[str, Any], raw: dict[str, Any]) -> Lesson:
    """Build a lesson from raw JSON content, inheriting module-level fields."""
    lesson_id = str(raw.get("id", "")).strip()
    if not lesson_id:
        raise ValueError(f"Lesson in module '{module.get('category', '<unknown>')}' has no id.")

    lesson_type = str(raw.get("type", module.get("type", "frontend")))
    if lesson_type not in LESSON_TYPES:
        raise ValueError(f"Lesson '{lesson_id}' has unknown type '{lesson_type}'.")

    title = str(raw.get("title", "")).strip()
    if not title:
        raise ValueError(f"Lesson '{lesson_id}' has no title.")

    comments = [_comment_from_dict(lesson_id, item) for item in raw.get("comments", [])]
    return Lesson(
        id=lesson_id,
        type=lesson_type,
        title=title,
        category=str(raw.get("category", module.get("category", ""))),
        track=str(raw.get("track", module.get("track", ""))),
        module_number=int(raw.get("module_number", module.get("module_number", 0))),
        lesson_number=int(raw.get("lesson_number", 0)),
        instructions=str(raw.get("instructions", "")),
        target_code=normalize_newlines(str(raw.get("target_code", ""))),
        starting_code=normalize_newlines(str(raw.get("starting_code", ""))),
        language=str(raw.get("language", module.get("language", "typescript"))),
        comments=comments,
    )


def _lessons_from_module(raw: dict[str, Any]) -> list[Lesson]:
    """Build every lesson in one module file."""
    return [_lesson_from_dict(raw, item) for item in raw.get("lessons", [])]


def load_lessons() -> dict[str, Lesson]:
    """Load bundled lessons."""
    lessons: list[Lesson] = []
    for entry in sorted(resources.files(CONTENT_PACKAGE).iterdir(), key=lambda item: item.name):
        if entry.name.endswith(".json"):
            raw = json.loads(entry.read_text(encoding="utf-8-sig"))
            lessons.extend(_lessons_from_module(raw))
    return _index_lessons(lessons)


def load_lessons_from_dir(path: Path) -> dict[str, Lesson]:
    """Load lessons from directory for tests/tools."""
    lessons: list[Lesson] = []
    for file_path in sorted(path.glob("*.json")):
        raw = json.loads(file_path.read_text(encoding="utf-8-sig"))
        lessons.extend(_lessons_from_module(raw))
    return _index_lessons(lessons)


def _index_lessons(lessons: list[Lesson]) -> dict[str, Lesson]:
    """Validate unique ids and return lessons keyed by id in curriculum order."""
    seen: set[str] = set()
    for lesson in lessons:
        if lesson.id in seen:
            raise ValueError(f"Duplicate lesson id: {lesson.id}")
        seen.add(lesson.id)
    return {lesson.id: lesson for lesson in sorted(lessons, key=lambda item: item.sort_key)}
