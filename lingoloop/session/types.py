"""
Session plan, attempt log and completion summary models.
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from lingoloop.cards import Card, CardKind


class SessionKind(str, Enum):
    LEARN = "learn"
    REVIEW = "review"


class SessionPlan(BaseModel):
    """An ordered, immutable sequence of cards for one session."""

    model_config = ConfigDict(frozen=True)

    id: str
    kind: SessionKind
    lesson_id: str | None = None
    title: str | None = None
    cards: tuple[Card, ...] = ()

    @property
    def is_empty(self) -> bool:
        return not self.cards

    @property
    def teach_count(self) -> int:
        return sum(1 for card in self.cards if card.kind == CardKind.TEACH)

    @property
    def card_ids(self) -> list[str]:
        return [card.id for card in self.cards]


class AttemptLog(BaseModel):
    """One answer submission for one card."""

    model_config = ConfigDict(frozen=True)

    session_id: str
    card_id: str
    card_kind: CardKind
    attempt_number: int
    answer: str
    is_correct: bool
    elapsed_ms: int
    error_type: str | None = None
    awarded_xp: int = 0
    timestamp: datetime


class KindBreakdown(BaseModel):
    correct: int = 0
    incorrect: int = 0
    attempts: int = 0


class CompletionSummary(BaseModel):
    """Totals reported when a runner reaches completion."""

    session_id: str
    kind: SessionKind
    total_xp: int = 0
    correct: int = 0
    incorrect: int = 0
    cards_completed: int = 0
    teach_cards: int = 0
    total_attempts: int = 0
    per_kind: dict[str, KindBreakdown] = Field(default_factory=dict)

    @property
    def accuracy(self) -> float:
        answered = self.correct + self.incorrect
        if answered == 0:
            return 0.0
        return self.correct / answered
