"""Core domain models for lesson content."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class InstructorComment:
    """Inline note attached to one line of a lesson target."""

    line: int
    text: str


@dataclass(frozen=True)
class Lesson:
    """One typing lesson with its target snippet."""

    id: str
    type: str
    title: str
    category: str
    track: str
    module_number: int
    lesson_number: int
    instructions: str
    target_code: str
    starting_code: str = ""
    language: str = "typescript"
    comments: list[InstructorComment] = field(default_factory=list)

    @property
    def sort_key(self) -> tuple[str, int, int]:
        """Return curriculum ordering key."""
        return (self.track, self.module_number, self.lesson_number)
