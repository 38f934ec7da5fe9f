"""
Multiple choice card handler.

The answer is the id of the chosen option and must match the correct option
id exactly.
"""

from typing import Any

from . import CardKind, register
from .base import EMPTY_ANSWER, WRONG_OPTION, AnswerResult


def _label_for(card: Any, option_id: str) -> str:
    for option in card.options:
        if option.id == option_id:
            return option.label
    return option_id


@register(CardKind.MULTIPLE_CHOICE)
class MultipleChoiceHandler:
    """Handler for Multiple Choice cards."""

    def check(self, card: Any, answer: Any) -> AnswerResult:
        correct_label = _label_for(card, card.correct_option_id)
        chosen = "" if answer is None else str(answer)

        if not chosen:
            return AnswerResult(
                correct=False,
                feedback=f"Correct answer: {correct_label}",
                user_answer="",
                correct_answer=correct_label,
                error_type=EMPTY_ANSWER,
                explanation=card.explanation,
            )

        is_correct = chosen == card.correct_option_id
        return AnswerResult(
            correct=is_correct,
            feedback="Correct!" if is_correct else f"Correct answer: {correct_label}",
            user_answer=chosen,
            correct_answer=correct_label,
            error_type=None if is_correct else WRONG_OPTION,
            explanation=None if is_correct else card.explanation,
        )

    def hint(self, card: Any, attempt: int) -> str | None:
        """Eliminate one wrong option per attempt."""
        wrong = [option for option in card.options if option.id != card.correct_option_id]
        if attempt < 1 or attempt > len(wrong) - 1:
            return None
        return f"It is not '{wrong[attempt - 1].label}'"

    def expected_answer(self, card: Any) -> str:
        return _label_for(card, card.correct_option_id)
