"""
Content: lessons, teachings and questions served read-only to the planner.
"""

from .cache import CachedCatalog
from .catalog import CatalogReader, ContentCatalog
from .models import ContentItem, Lesson, QuestionItem, TeachingItem

__all__ = [
    "CachedCatalog",
    "CatalogReader",
    "ContentCatalog",
    "ContentItem",
    "Lesson",
    "QuestionItem",
    "TeachingItem",
]
