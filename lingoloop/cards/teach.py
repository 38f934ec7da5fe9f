"""
Teach card handler.

Teach cards introduce a phrase. There is nothing to get wrong: any submission
(typically "viewed") resolves the card as correct on the first attempt.
"""

from typing import Any

from . import CardKind, register
from .base import AnswerResult

VIEWED = "viewed"


@register(CardKind.TEACH)
class TeachHandler:
    """Handler for Teach cards."""

    def check(self, card: Any, answer: Any) -> AnswerResult:
        return AnswerResult(
            correct=True,
            feedback="",
            user_answer=str(answer) if answer else VIEWED,
            correct_answer=card.phrase,
        )

    def hint(self, card: Any, attempt: int) -> str | None:
        return card.usage_note

    def expected_answer(self, card: Any) -> str:
        return card.phrase
