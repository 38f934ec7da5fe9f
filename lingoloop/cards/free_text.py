"""
Free-text card handlers: fill in the blank, translation and listening.

All three grade by case-insensitive, trimmed string equality against the
expected text.
"""

from typing import Any

from . import CardKind, register
from .base import AnswerResult, check_text


def _letter_hints(expected: str, attempt: int) -> str | None:
    if not expected:
        return None
    if attempt == 1:
        return f"Starts with: {expected[0]}..."
    if attempt == 2:
        return f"The answer has {len(expected)} characters"
    return None


@register(CardKind.FILL_BLANK)
class FillBlankHandler:
    """Handler for Fill Blank cards."""

    def check(self, card: Any, answer: Any) -> AnswerResult:
        return check_text(card.answer, answer)

    def hint(self, card: Any, attempt: int) -> str | None:
        if attempt == 1 and card.hint:
            return card.hint
        return _letter_hints(card.answer, attempt)

    def expected_answer(self, card: Any) -> str:
        return card.answer


@register(CardKind.TRANSLATE_TO_TARGET, CardKind.TRANSLATE_FROM_TARGET)
class TranslateHandler:
    """Handler for translation cards in either direction."""

    def check(self, card: Any, answer: Any) -> AnswerResult:
        return check_text(card.expected, answer)

    def hint(self, card: Any, attempt: int) -> str | None:
        if attempt == 1 and card.hint:
            return card.hint
        return _letter_hints(card.expected, attempt)

    def expected_answer(self, card: Any) -> str:
        return card.expected


@register(CardKind.LISTENING)
class ListeningHandler:
    """Handler for Listening cards (type what you hear)."""

    def check(self, card: Any, answer: Any) -> AnswerResult:
        return check_text(card.expected, answer, explanation=card.translation)

    def hint(self, card: Any, attempt: int) -> str | None:
        if attempt == 1 and card.translation:
            return f"Meaning: {card.translation}"
        return _letter_hints(card.expected, attempt)

    def expected_answer(self, card: Any) -> str:
        return card.expected
