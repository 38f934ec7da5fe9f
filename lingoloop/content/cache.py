"""
Read-through TTL cache in front of a catalog.

Catalog reads may be served stale for up to `ttl_seconds`. Cached values are
frozen models and tuples, so a reader cannot mutate what the next reader sees.
"""

from __future__ import annotations

import time
from collections.abc import Callable
from threading import Lock
from typing import Any

from loguru import logger

from .catalog import CatalogReader
from .models import ContentItem, Lesson


class CachedCatalog:
    """Wraps a CatalogReader with a per-key time-to-live cache."""

    def __init__(
        self,
        catalog: CatalogReader,
        ttl_seconds: float = 30.0,
        clock: Callable[[], float] = time.monotonic,
    ):
        self.catalog = catalog
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._entries: dict[tuple[str, str], tuple[float, Any]] = {}
        self._lock = Lock()

    def _cached(self, key: tuple[str, str], load: Callable[[], Any]) -> Any:
        now = self._clock()
        with self._lock:
            entry = self._entries.get(key)
            if entry is not None and now - entry[0] < self.ttl_seconds:
                return entry[1]

        # Errors from the underlying catalog propagate and are not cached
        value = load()
        with self._lock:
            self._entries[key] = (now, value)
        logger.debug(f"Catalog cache miss: {key[0]} {key[1]}")
        return value

    def get_lesson(self, lesson_id: str) -> Lesson:
        return self._cached(("lesson", lesson_id), lambda: self.catalog.get_lesson(lesson_id))

    def list_lessons(self) -> list[Lesson]:
        return list(self._cached(("lessons", ""), lambda: tuple(self.catalog.list_lessons())))

    def get_lesson_items(self, lesson_id: str) -> tuple[ContentItem, ...]:
        return self.get_lesson(lesson_id).items

    def get_item(self, item_id: str) -> ContentItem | None:
        return self._cached(("item", item_id), lambda: self.catalog.get_item(item_id))

    def invalidate(self) -> None:
        with self._lock:
            self._entries.clear()
