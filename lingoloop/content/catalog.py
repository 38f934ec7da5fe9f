"""
Content Catalog: read-only lesson content.

Loads lessons from JSON files (one lesson per file) and serves them by id.
Item ids are globally unique so a mastery record can always be traced back to
its content item.
"""

from __future__ import annotations

import json
from collections.abc import Iterable
from pathlib import Path
from typing import Protocol

from loguru import logger

from lingoloop.errors import NotFoundError

from .models import ContentItem, Lesson, QuestionItem


class CatalogReader(Protocol):
    """Read side of the content catalog used by the plan builder."""

    def list_lessons(self) -> list[Lesson]:
        ...

    def get_lesson(self, lesson_id: str) -> Lesson:
        ...

    def get_lesson_items(self, lesson_id: str) -> tuple[ContentItem, ...]:
        ...

    def get_item(self, item_id: str) -> ContentItem | None:
        ...


class ContentCatalog:
    """In-memory catalog over a set of lessons."""

    def __init__(self, lessons: Iterable[Lesson] = ()):
        self._lessons: dict[str, Lesson] = {}
        self._items: dict[str, ContentItem] = {}
        for lesson in lessons:
            self._add(lesson)
        self._validate_teaching_refs()

    @classmethod
    def from_dir(cls, path: Path) -> ContentCatalog:
        """
        Load every *.json lesson in a directory.

        Args:
            path: Directory of lesson files

        Returns:
            ContentCatalog over the loaded lessons
        """
        path = Path(path)
        if not path.exists():
            logger.warning(f"Content directory not found: {path}")
            return cls()

        lessons = []
        for file_path in sorted(path.glob("*.json")):
            try:
                raw = json.loads(file_path.read_text(encoding="utf-8-sig"))
                lessons.append(Lesson.model_validate(raw))
            except (OSError, ValueError) as e:
                logger.warning(f"Skipping invalid lesson file {file_path.name}: {e}")

        catalog = cls(lessons)
        logger.info(f"Loaded {len(lessons)} lessons ({len(catalog._items)} items) from {path}")
        return catalog

    def _add(self, lesson: Lesson) -> None:
        if lesson.id in self._lessons:
            raise ValueError(f"Duplicate lesson id: {lesson.id}")
        for item in lesson.items:
            if item.id in self._items:
                raise ValueError(f"Duplicate content item id: {item.id} (in {lesson.id})")
            self._items[item.id] = item
        self._lessons[lesson.id] = lesson

    def _validate_teaching_refs(self) -> None:
        for item in self._items.values():
            if isinstance(item, QuestionItem) and item.teaching_id not in self._items:
                raise ValueError(
                    f"Question '{item.id}' references unknown teaching '{item.teaching_id}'"
                )

    def list_lessons(self) -> list[Lesson]:
        return sorted(self._lessons.values(), key=lambda lesson: (lesson.order, lesson.id))

    def get_lesson(self, lesson_id: str) -> Lesson:
        lesson = self._lessons.get(lesson_id)
        if lesson is None:
            raise NotFoundError("Lesson", lesson_id)
        return lesson

    def get_lesson_items(self, lesson_id: str) -> tuple[ContentItem, ...]:
        return self.get_lesson(lesson_id).items

    def get_item(self, item_id: str) -> ContentItem | None:
        return self._items.get(item_id)
