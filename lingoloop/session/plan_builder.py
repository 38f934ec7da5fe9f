"""
Session Plan Builder.

Builds the ordered card sequence for a session:
1. Lesson plans: Teach cards for unseen teachings first, then practice cards
2. Review plans: due items, most overdue first, capped at the session limit

The challenge weight sets the share of free-response practice (fill blank,
translate) against recognition (multiple choice). Which questions go
free-response is decided by a shuffle seeded from the session id, and the
chosen set only grows as the weight rises.
"""

from __future__ import annotations

import hashlib
import math
import random
import uuid
from collections.abc import Sequence
from dataclasses import dataclass
from datetime import datetime

from loguru import logger

from lingoloop.cards import (
    FREE_RESPONSE_KINDS,
    Card,
    CardKind,
    FillBlankCard,
    ListeningCard,
    MultipleChoiceCard,
    TeachCard,
    TranslateCard,
)
from lingoloop.clock import Clock, utcnow
from lingoloop.content.catalog import CatalogReader
from lingoloop.content.models import ContentItem, QuestionItem, TeachingItem
from lingoloop.onboarding.schema import LearningStyle, OnboardingSignals
from lingoloop.srs.state_store import MasteryStore

from .types import SessionKind, SessionPlan

# Estimated seconds per card, by kind
SECONDS_PER_KIND: dict[CardKind, int] = {
    CardKind.TEACH: 30,
    CardKind.MULTIPLE_CHOICE: 30,
    CardKind.FILL_BLANK: 45,
    CardKind.TRANSLATE_TO_TARGET: 60,
    CardKind.TRANSLATE_FROM_TARGET: 60,
    CardKind.LISTENING: 90,
}

DEFAULT_PROMPTS: dict[CardKind, str] = {
    CardKind.TEACH: "New phrase",
    CardKind.MULTIPLE_CHOICE: "Choose the correct answer",
    CardKind.FILL_BLANK: "Fill in the blank",
    CardKind.TRANSLATE_TO_TARGET: "Translate into the target language",
    CardKind.TRANSLATE_FROM_TARGET: "What does this mean?",
    CardKind.LISTENING: "Type what you hear",
}

# Free-response kind preference by challenge band
FREE_KIND_ORDER = (
    CardKind.FILL_BLANK,
    CardKind.TRANSLATE_FROM_TARGET,
    CardKind.TRANSLATE_TO_TARGET,
)
HIGH_CHALLENGE_FREE_KIND_ORDER = (
    CardKind.TRANSLATE_TO_TARGET,
    CardKind.FILL_BLANK,
    CardKind.TRANSLATE_FROM_TARGET,
)


@dataclass
class PlanConfig:
    """Configuration for session planning."""

    review_session_limit: int = 20
    free_response_min_share: float = 0.2
    free_response_max_share: float = 0.8
    high_challenge_threshold: float = 0.7
    max_same_kind_in_row: int = 2
    time_buffer_ratio: float = 0.2  # Share of the pacing budget held back

    @classmethod
    def from_settings(cls, settings=None) -> PlanConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_plan_config())


def new_session_id() -> str:
    return uuid.uuid4().hex


def seed_for(session_id: str) -> int:
    """Stable RNG seed for a session id (never the wall clock)."""
    digest = hashlib.sha256(session_id.encode("utf-8")).digest()
    return int.from_bytes(digest[:8], "big")


def estimate_minutes(plan: SessionPlan) -> int:
    """Rough session length in whole minutes."""
    seconds = sum(SECONDS_PER_KIND.get(card.kind, 30) for card in plan.cards)
    return math.ceil(seconds / 60)


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


# =============================================================================
# Card Construction
# =============================================================================


def teach_card(teaching: TeachingItem) -> TeachCard:
    return TeachCard(
        id=teaching.id,
        prompt=DEFAULT_PROMPTS[CardKind.TEACH],
        teaching_id=teaching.id,
        phrase=teaching.phrase,
        translation=teaching.translation,
        usage_note=teaching.usage_note,
        emoji=teaching.emoji,
    )


def recall_card(teaching: TeachingItem) -> TranslateCard:
    """Review form of a teaching: recall the meaning of the phrase."""
    return TranslateCard(
        id=teaching.id,
        kind=CardKind.TRANSLATE_FROM_TARGET,
        prompt=DEFAULT_PROMPTS[CardKind.TRANSLATE_FROM_TARGET],
        teaching_id=teaching.id,
        source=teaching.phrase,
        expected=teaching.translation,
    )


def practice_card(question: QuestionItem, kind: CardKind) -> Card:
    """Deliver a question as one of the kinds it offers."""
    prompt = question.prompt or DEFAULT_PROMPTS[kind]
    common = {"id": question.id, "prompt": prompt, "teaching_id": question.teaching_id}

    if kind is CardKind.MULTIPLE_CHOICE:
        return MultipleChoiceCard(
            **common,
            options=question.options,
            correct_option_id=question.correct_option_id,
            explanation=question.explanation,
            source_text=question.phrase,
        )
    if kind is CardKind.FILL_BLANK:
        return FillBlankCard(**common, text=question.text, answer=question.answer, hint=question.hint)
    if kind is CardKind.TRANSLATE_TO_TARGET:
        return TranslateCard(
            **common,
            kind=kind,
            source=question.translation,
            expected=question.phrase,
            hint=question.hint,
        )
    if kind is CardKind.TRANSLATE_FROM_TARGET:
        return TranslateCard(
            **common,
            kind=kind,
            source=question.phrase,
            expected=question.translation,
            hint=question.hint,
        )
    if kind is CardKind.LISTENING:
        return ListeningCard(
            **common,
            audio_url=question.audio_url,
            expected=question.phrase,
            translation=question.translation,
        )
    raise ValueError(f"Question '{question.id}' cannot be delivered as {kind.value}")


# =============================================================================
# Plan Builder
# =============================================================================


class SessionPlanBuilder:
    """
    Builds lesson and review plans from the catalog and the mastery store.

    Plans depend only on their inputs and the session id: the same lesson,
    signals, mastery state and session id always produce the same cards.
    """

    def __init__(
        self,
        catalog: CatalogReader,
        store: MasteryStore,
        config: PlanConfig | None = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize the builder.

        Args:
            catalog: Read-only content catalog
            store: MasteryStore used for seen checks and due queries
            config: Planning configuration (uses defaults if None)
            clock: Source of `now` for review plans
        """
        self.catalog = catalog
        self.store = store
        self.config = config or PlanConfig()
        self.clock = clock

    # ─── Lesson ──────────────────────────────────────────────────────────────

    def build_lesson_plan(
        self,
        lesson_id: str,
        signals: OnboardingSignals,
        user_id: str | None = None,
        session_id: str | None = None,
    ) -> SessionPlan:
        """
        Build a plan for a lesson.

        Args:
            lesson_id: Lesson to load from the catalog
            signals: Personalization signals of the learner
            user_id: Learner; teachings with a mastery record count as seen
            session_id: Plan id and RNG seed source (generated if None)

        Returns:
            SessionPlan with Teach cards first, then interleaved practice

        Raises:
            NotFoundError: if the lesson does not exist
        """
        session_id = session_id or new_session_id()
        lesson = self.catalog.get_lesson(lesson_id)

        teach_cards = [
            teach_card(teaching)
            for teaching in lesson.teachings
            if not self._has_seen(user_id, teaching.id)
        ]

        questions = list(lesson.questions)
        kinds = self.assign_kinds(questions, signals, session_id)
        practice = [practice_card(question, kinds[question.id]) for question in questions]

        plan = SessionPlan(
            id=session_id,
            kind=SessionKind.LEARN,
            lesson_id=lesson.id,
            title=lesson.title or lesson.id,
            cards=tuple(teach_cards + self.interleave(practice)),
        )

        logger.info(
            f"Lesson plan {session_id} for {lesson_id}: {len(teach_cards)} teach + "
            f"{len(practice)} practice (~{estimate_minutes(plan)} min)"
        )
        return plan

    def _has_seen(self, user_id: str | None, item_id: str) -> bool:
        if user_id is None:
            return False
        return self.store.get_mastery(user_id, item_id) is not None

    # ─── Review ──────────────────────────────────────────────────────────────

    def build_review_plan(
        self,
        user_id: str,
        signals: OnboardingSignals,
        now: datetime | None = None,
        session_id: str | None = None,
    ) -> SessionPlan:
        """
        Build a review plan from the learner's due items.

        Order is ascending due_at (most overdue first), then lowest streak,
        then card id. An empty due set yields an empty plan.
        """
        session_id = session_id or new_session_id()
        now = now or self.clock()

        due = sorted(
            self.store.get_due_items(user_id, now),
            key=lambda item: (item.due_at, item.consecutive_correct, item.card_id),
        )

        items: list[ContentItem] = []
        for due_item in due:
            if len(items) >= self.config.review_session_limit:
                break
            content = self.catalog.get_item(due_item.card_id)
            if content is None:
                logger.warning(f"Due card {due_item.card_id} not in catalog, skipping")
                continue
            items.append(content)

        questions = [item for item in items if isinstance(item, QuestionItem)]
        kinds = self.assign_kinds(questions, signals, session_id)

        cards: list[Card] = []
        for item in items:
            if isinstance(item, TeachingItem):
                cards.append(recall_card(item))
            else:
                cards.append(practice_card(item, kinds[item.id]))

        if signals.session_minutes:
            cards = self.fit_to_budget(cards, signals.session_minutes)

        plan = SessionPlan(id=session_id, kind=SessionKind.REVIEW, title="Review", cards=tuple(cards))
        logger.info(f"Review plan {session_id} for {user_id}: {len(cards)} of {len(due)} due")
        return plan

    def fit_to_budget(self, cards: list[Card], session_minutes: int) -> list[Card]:
        """
        Keep the leading cards that fit the pacing budget.

        The budget is `session_minutes` less the buffer ratio. Cards keep
        their order; the first card is always kept.
        """
        budget = session_minutes * 60 * (1 - self.config.time_buffer_ratio)
        kept: list[Card] = []
        spent = 0
        for card in cards:
            seconds = SECONDS_PER_KIND.get(card.kind, 30)
            if kept and spent + seconds > budget:
                break
            kept.append(card)
            spent += seconds
        if len(kept) < len(cards):
            logger.debug(f"Pacing budget {session_minutes} min keeps {len(kept)} of {len(cards)} cards")
        return kept

    # ─── Kind Selection ──────────────────────────────────────────────────────

    def free_response_share(self, challenge_weight: float) -> float:
        low = self.config.free_response_min_share
        high = self.config.free_response_max_share
        return low + (high - low) * _clamp(challenge_weight)

    def _free_kind(self, question: QuestionItem, challenge_weight: float) -> CardKind | None:
        order = (
            HIGH_CHALLENGE_FREE_KIND_ORDER
            if challenge_weight >= self.config.high_challenge_threshold
            else FREE_KIND_ORDER
        )
        for kind in order:
            if kind in question.kinds:
                return kind
        return None

    def assign_kinds(
        self,
        questions: Sequence[QuestionItem],
        signals: OnboardingSignals,
        session_id: str,
    ) -> dict[str, CardKind]:
        """
        Pick the delivery kind of every question.

        Questions offering both multiple choice and a free-response kind are
        split by the free-response share; the rest use what they offer.
        """
        weight = _clamp(signals.challenge_weight)
        prefers_listening = LearningStyle.AUDITORY.value in signals.learning_style_focus

        kinds: dict[str, CardKind] = {}
        mixable: list[QuestionItem] = []

        for question in questions:
            offered = set(question.kinds)
            if prefers_listening and CardKind.LISTENING in offered:
                kinds[question.id] = CardKind.LISTENING
            elif CardKind.MULTIPLE_CHOICE in offered and offered & FREE_RESPONSE_KINDS:
                mixable.append(question)
            else:
                kinds[question.id] = (
                    self._free_kind(question, weight)
                    or (CardKind.MULTIPLE_CHOICE if CardKind.MULTIPLE_CHOICE in offered else question.kinds[0])
                )

        # Shuffle order depends only on the session id and the question set
        order = sorted(question.id for question in mixable)
        random.Random(seed_for(session_id)).shuffle(order)
        free_count = math.floor(self.free_response_share(weight) * len(mixable) + 0.5)
        free_ids = set(order[:free_count])

        for question in mixable:
            if question.id in free_ids:
                kinds[question.id] = self._free_kind(question, weight)
            else:
                kinds[question.id] = CardKind.MULTIPLE_CHOICE

        return kinds

    # ─── Interleaving ────────────────────────────────────────────────────────

    def interleave(self, cards: list[Card]) -> list[Card]:
        """
        Reorder practice cards so no more than N of one kind run together.

        Greedy: take the first remaining card that keeps the constraint, or
        the first card when none does.
        """
        if len(cards) <= 1:
            return cards

        result: list[Card] = []
        remaining = cards.copy()

        while remaining:
            for i, card in enumerate(remaining):
                if self._can_add(result, card):
                    result.append(remaining.pop(i))
                    break
            else:
                result.append(remaining.pop(0))

        return result

    def _can_add(self, queue: list[Card], card: Card) -> bool:
        limit = self.config.max_same_kind_in_row
        recent = [c.kind for c in queue[-limit:]]
        if len(recent) >= limit and all(kind == card.kind for kind in recent):
            return False
        return True
