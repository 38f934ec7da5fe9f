"""
Base protocol and types for card handlers.
"""

from dataclasses import dataclass
from typing import Any, Protocol

# Error type labels recorded on attempt logs
EMPTY_ANSWER = "empty_answer"
WRONG_OPTION = "wrong_option"
MISMATCH = "mismatch"


@dataclass
class AnswerResult:
    """Result of checking an answer."""
    correct: bool
    feedback: str
    user_answer: str
    correct_answer: str
    error_type: str | None = None
    explanation: str | None = None


def normalize_text(value: Any) -> str:
    """Case-insensitive, trimmed comparison form of a free-text answer."""
    if value is None:
        return ""
    return str(value).strip().casefold()


def check_text(expected: str, answer: Any, explanation: str | None = None) -> AnswerResult:
    """Grade a free-text answer against the expected text."""
    user_answer = "" if answer is None else str(answer).strip()
    if not user_answer:
        return AnswerResult(
            correct=False,
            feedback=f"Expected: {expected}",
            user_answer="",
            correct_answer=expected,
            error_type=EMPTY_ANSWER,
            explanation=explanation,
        )

    is_correct = normalize_text(user_answer) == normalize_text(expected)
    return AnswerResult(
        correct=is_correct,
        feedback="Correct!" if is_correct else f"Expected: {expected}",
        user_answer=user_answer,
        correct_answer=expected,
        error_type=None if is_correct else MISMATCH,
        explanation=None if is_correct else explanation,
    )


class CardHandler(Protocol):
    """Protocol for card kind handlers."""

    def check(self, card: Any, answer: Any) -> AnswerResult:
        """Validate the answer and return result."""
        ...

    def hint(self, card: Any, attempt: int) -> str | None:
        """Get progressive hint for attempt N. Returns None if no hint available."""
        ...

    def expected_answer(self, card: Any) -> str:
        """The answer to reveal after a miss."""
        ...
