"""
Card kinds and their answer handlers.

Each card kind has its own module with:
- check(): evaluate an answer against the card's correct-answer rule
- hint(): progressive hints for retries
- expected_answer(): the answer shown after a miss
"""

from enum import Enum
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from .base import CardHandler


class CardKind(str, Enum):
    """Supported card kinds in a session plan."""
    TEACH = "teach"
    MULTIPLE_CHOICE = "mcq"
    FILL_BLANK = "fill_blank"
    TRANSLATE_TO_TARGET = "translate_to_target"
    TRANSLATE_FROM_TARGET = "translate_from_target"
    LISTENING = "listening"


RECOGNITION_KINDS = frozenset({CardKind.MULTIPLE_CHOICE})
FREE_RESPONSE_KINDS = frozenset({
    CardKind.FILL_BLANK,
    CardKind.TRANSLATE_TO_TARGET,
    CardKind.TRANSLATE_FROM_TARGET,
})
PRACTICE_KINDS = frozenset(CardKind) - {CardKind.TEACH}


# Handler registry - populated by @register decorator
HANDLERS: dict[CardKind, "CardHandler"] = {}


def register(*kinds: CardKind):
    """Decorator to register a handler for one or more card kinds."""
    def decorator(cls):
        instance = cls()
        for kind in kinds:
            HANDLERS[kind] = instance
        return cls
    return decorator


def get_handler(kind: str | CardKind) -> "CardHandler | None":
    """Get the handler for a card kind."""
    if isinstance(kind, str) and not isinstance(kind, CardKind):
        try:
            kind = CardKind(kind.lower())
        except ValueError:
            return None
    return HANDLERS.get(kind)


from .models import (  # noqa: E402
    Card,
    ChoiceOption,
    FillBlankCard,
    ListeningCard,
    MultipleChoiceCard,
    TeachCard,
    TranslateCard,
)

# Import handlers to trigger registration
from . import teach  # noqa: E402
from . import multiple_choice  # noqa: E402
from . import free_text  # noqa: E402

__all__ = [
    "CardKind",
    "RECOGNITION_KINDS",
    "FREE_RESPONSE_KINDS",
    "PRACTICE_KINDS",
    "HANDLERS",
    "get_handler",
    "register",
    "Card",
    "ChoiceOption",
    "TeachCard",
    "MultipleChoiceCard",
    "FillBlankCard",
    "TranslateCard",
    "ListeningCard",
]
