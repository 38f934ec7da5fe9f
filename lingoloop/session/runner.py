"""
Session Runner.

A session moves through three states:

    not_started -> in_progress -> completed

All runner state lives in RunnerState, which each transition takes and
returns, so a session can be saved and resumed between any two calls.
Answering a card is two steps:

1. evaluate_answer(): grade, log the attempt, and mark the card resolved
   (correct, or the retry cap reached) as `pending`
2. advance(): move the cursor past a pending card, completing the session
   after the last one

submit_answer() does both. SessionRunner drives a state through collaborators:
it appends each attempt to the sink as it happens and commits each resolution
through a hook before advancing.
"""

from __future__ import annotations

from collections.abc import Callable, Iterator
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from threading import Lock
from typing import Any

from loguru import logger
from pydantic import BaseModel, ConfigDict

from lingoloop.cards import Card, CardKind, get_handler
from lingoloop.cards.base import AnswerResult
from lingoloop.clock import Clock, utcnow
from lingoloop.errors import InvalidStateError

from .types import AttemptLog, CompletionSummary, KindBreakdown, SessionPlan

DEFAULT_RETRY_CAP = 2

# XP per attempt
BASE_XP = 5
CORRECT_XP = 10
SPEED_BONUSES = ((5_000, 5), (10_000, 3), (20_000, 1))  # (under ms, bonus)


class RunnerStatus(str, Enum):
    NOT_STARTED = "not_started"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class CardOutcome(BaseModel):
    """Final result of one card."""

    model_config = ConfigDict(frozen=True)

    card_id: str
    card_kind: CardKind
    is_correct: bool
    attempts: int
    resolved_at: datetime


class RunnerState(BaseModel):
    """Everything a runner knows about a session, serializable as JSON."""

    model_config = ConfigDict(frozen=True)

    plan: SessionPlan
    status: RunnerStatus = RunnerStatus.NOT_STARTED
    cursor: int = 0
    attempts_for_current_card: int = 0
    card_presented_at: datetime | None = None
    attempts: tuple[AttemptLog, ...] = ()
    outcomes: tuple[CardOutcome, ...] = ()
    pending: CardOutcome | None = None
    started_at: datetime | None = None
    completed_at: datetime | None = None

    @property
    def session_id(self) -> str:
        return self.plan.id

    @property
    def current_card(self) -> Card | None:
        if self.status is not RunnerStatus.IN_PROGRESS or self.cursor >= len(self.plan.cards):
            return None
        return self.plan.cards[self.cursor]

    @property
    def is_completed(self) -> bool:
        return self.status is RunnerStatus.COMPLETED

    @property
    def remaining(self) -> int:
        return max(0, len(self.plan.cards) - self.cursor)


@dataclass
class SubmitResult:
    """What one answer submission produced."""

    state: RunnerState
    attempt: AttemptLog
    result: AnswerResult
    resolved: bool
    hint: str | None = None

    @property
    def should_retry(self) -> bool:
        return not self.resolved

    @property
    def summary(self) -> CompletionSummary | None:
        if not self.state.is_completed:
            return None
        return build_summary(self.state)


# =============================================================================
# XP and Summary
# =============================================================================


def calculate_xp(card_kind: CardKind, is_correct: bool, elapsed_ms: int) -> int:
    """
    XP for one attempt.

    5 for trying, 10 more when correct, plus a speed bonus on correct answers
    (+5 under 5s, +3 under 10s, +1 under 20s). Teach cards award nothing.
    """
    if card_kind == CardKind.TEACH:
        return 0
    xp = BASE_XP
    if is_correct:
        xp += CORRECT_XP
        for limit_ms, bonus in SPEED_BONUSES:
            if elapsed_ms < limit_ms:
                xp += bonus
                break
    return xp


def build_summary(state: RunnerState) -> CompletionSummary:
    """Totals over resolved cards and logged attempts."""
    per_kind: dict[str, KindBreakdown] = {}
    correct = incorrect = teach_cards = 0

    for outcome in state.outcomes:
        breakdown = per_kind.setdefault(outcome.card_kind.value, KindBreakdown())
        breakdown.attempts += outcome.attempts
        if outcome.card_kind == CardKind.TEACH:
            teach_cards += 1
        elif outcome.is_correct:
            correct += 1
            breakdown.correct += 1
        else:
            incorrect += 1
            breakdown.incorrect += 1

    return CompletionSummary(
        session_id=state.session_id,
        kind=state.plan.kind,
        total_xp=sum(attempt.awarded_xp for attempt in state.attempts),
        correct=correct,
        incorrect=incorrect,
        cards_completed=len(state.outcomes),
        teach_cards=teach_cards,
        total_attempts=len(state.attempts),
        per_kind=per_kind,
    )


# =============================================================================
# Transitions
# =============================================================================


def start(plan: SessionPlan, now: datetime) -> RunnerState:
    """Begin a session. An empty plan completes immediately."""
    if plan.is_empty:
        logger.info(f"Session {plan.id} has no cards, completing immediately")
        return RunnerState(
            plan=plan,
            status=RunnerStatus.COMPLETED,
            started_at=now,
            completed_at=now,
        )
    return RunnerState(
        plan=plan,
        status=RunnerStatus.IN_PROGRESS,
        card_presented_at=now,
        started_at=now,
    )


def _require_in_progress(state: RunnerState) -> Card:
    if state.status is not RunnerStatus.IN_PROGRESS:
        raise InvalidStateError(f"Session {state.session_id} is {state.status.value}")
    if state.pending is not None:
        raise InvalidStateError(
            f"Card {state.pending.card_id} is resolved but not committed; retry the commit first"
        )
    return state.plan.cards[state.cursor]


def evaluate_answer(
    state: RunnerState,
    answer: Any,
    now: datetime,
    retry_cap: int = DEFAULT_RETRY_CAP,
) -> SubmitResult:
    """
    Grade an answer to the current card and log the attempt.

    The returned state has `pending` set when the card resolved. The cursor
    does not move until advance() is called.

    Raises:
        InvalidStateError: if the session is not in progress, or a resolved
            card is still pending
    """
    card = _require_in_progress(state)
    handler = get_handler(card.kind)
    if handler is None:
        raise InvalidStateError(f"No handler registered for card kind {card.kind}")

    result = handler.check(card, answer)
    attempt_number = state.attempts_for_current_card + 1
    presented_at = state.card_presented_at or now
    elapsed_ms = max(0, int((now - presented_at).total_seconds() * 1000))

    attempt = AttemptLog(
        session_id=state.session_id,
        card_id=card.id,
        card_kind=card.kind,
        attempt_number=attempt_number,
        answer=result.user_answer,
        is_correct=result.correct,
        elapsed_ms=elapsed_ms,
        error_type=result.error_type,
        awarded_xp=calculate_xp(card.kind, result.correct, elapsed_ms),
        timestamp=now,
    )

    resolved = result.correct or attempt_number >= retry_cap
    updates: dict[str, Any] = {
        "attempts": state.attempts + (attempt,),
        "attempts_for_current_card": attempt_number,
    }
    hint = None
    if resolved:
        updates["pending"] = CardOutcome(
            card_id=card.id,
            card_kind=card.kind,
            is_correct=result.correct,
            attempts=attempt_number,
            resolved_at=now,
        )
    else:
        # Re-present the same card; elapsed time restarts from now
        updates["card_presented_at"] = now
        hint = handler.hint(card, attempt_number)

    return SubmitResult(
        state=state.model_copy(update=updates),
        attempt=attempt,
        result=result,
        resolved=resolved,
        hint=hint,
    )


def advance(state: RunnerState, now: datetime) -> RunnerState:
    """Move past the pending card; complete the session after the last card."""
    if state.pending is None:
        raise InvalidStateError(f"Session {state.session_id} has no resolved card to advance past")

    cursor = state.cursor + 1
    updates: dict[str, Any] = {
        "cursor": cursor,
        "attempts_for_current_card": 0,
        "outcomes": state.outcomes + (state.pending,),
        "pending": None,
        "card_presented_at": now,
    }
    if cursor >= len(state.plan.cards):
        updates["status"] = RunnerStatus.COMPLETED
        updates["completed_at"] = now
        updates["card_presented_at"] = None
    return state.model_copy(update=updates)


def submit_answer(
    state: RunnerState,
    answer: Any,
    now: datetime,
    retry_cap: int = DEFAULT_RETRY_CAP,
) -> SubmitResult:
    """Grade, log, and advance when the card resolves."""
    submitted = evaluate_answer(state, answer, now, retry_cap)
    if submitted.resolved:
        submitted.state = advance(submitted.state, now)
    return submitted


# =============================================================================
# Driver
# =============================================================================


class SessionRunner:
    """
    Drives one session against its collaborators.

    - Each AttemptLog is appended to the sink before anything else happens
    - `on_resolved(user_id, outcome)` runs once per resolved card; if it
      raises, the card stays pending, the cursor stays put, and the error
      propagates to the caller, who can call retry_pending()
    - Submissions are not reentrant: a submission that arrives while another
      is being processed raises InvalidStateError
    """

    def __init__(
        self,
        user_id: str,
        sink: Any,
        on_resolved: Callable[[str, CardOutcome], Any] | None = None,
        retry_cap: int = DEFAULT_RETRY_CAP,
        clock: Clock = utcnow,
        on_state: Callable[[RunnerState], Any] | None = None,
        is_committed: Callable[[str, CardOutcome], bool] | None = None,
    ):
        """
        Initialize the runner.

        Args:
            user_id: Learner the session belongs to
            sink: AttemptSink receiving every attempt as it happens
            on_resolved: Resolution hook, typically the scheduler commit
            retry_cap: Attempts per card before it resolves as incorrect
            clock: Source of the current time
            on_state: Called with every new state (e.g. to save for resume)
            is_committed: Tells whether a pending outcome already reached the
                scheduler, so a resumed card is not committed twice
        """
        if retry_cap < 1:
            raise ValueError("retry_cap must be at least 1")
        self.user_id = user_id
        self.sink = sink
        self.on_resolved = on_resolved
        self.retry_cap = retry_cap
        self.clock = clock
        self.on_state = on_state
        self.is_committed = is_committed
        self.state: RunnerState | None = None
        self._busy = Lock()

    @classmethod
    def from_settings(cls, user_id: str, sink: Any, settings=None, **kwargs) -> SessionRunner:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(user_id, sink, **settings.get_runner_config(), **kwargs)

    # ─── Lifecycle ───────────────────────────────────────────────────────────

    def start(self, plan: SessionPlan) -> RunnerState:
        with self._guard():
            if self.state is not None and self.state.status is not RunnerStatus.NOT_STARTED:
                raise InvalidStateError(f"Runner already started session {self.state.session_id}")
            self._set_state(start(plan, self.clock()))
            logger.info(f"Started session {plan.id} ({len(plan.cards)} cards)")
            return self.state

    def resume(self, state: RunnerState) -> RunnerState:
        """Adopt a saved state. A pending resolution is committed first."""
        with self._guard():
            self._set_state(state)
            logger.info(
                f"Resumed session {state.session_id} at card {state.cursor + 1}/{len(state.plan.cards)}"
            )
            if state.pending is not None:
                self._commit_pending(recheck=True)
            return self.state

    @property
    def current_card(self) -> Card | None:
        return self.state.current_card if self.state else None

    @property
    def is_completed(self) -> bool:
        return self.state is not None and self.state.is_completed

    @property
    def summary(self) -> CompletionSummary | None:
        if not self.is_completed:
            return None
        return build_summary(self.state)

    # ─── Answers ─────────────────────────────────────────────────────────────

    def submit(self, answer: Any) -> SubmitResult:
        """
        Submit an answer for the current card.

        Returns:
            SubmitResult for the attempt, carrying the state after any advance

        Raises:
            InvalidStateError: if not started, completed, busy, or pending
        """
        with self._guard():
            if self.state is None:
                raise InvalidStateError("Runner has not been started")

            submitted = evaluate_answer(self.state, answer, self.clock(), self.retry_cap)
            self.sink.append(submitted.attempt)
            self._set_state(submitted.state)

            if submitted.resolved:
                self._commit_pending()
                submitted.state = self.state
                if self.state.is_completed:
                    summary = build_summary(self.state)
                    logger.info(
                        f"Session {self.state.session_id} completed: "
                        f"{summary.correct} correct, {summary.incorrect} incorrect, "
                        f"{summary.total_xp} XP"
                    )
            return submitted

    def retry_pending(self) -> RunnerState:
        """Re-run the resolution hook for a card whose commit failed."""
        with self._guard():
            if self.state is None or self.state.pending is None:
                raise InvalidStateError("No pending resolution to retry")
            self._commit_pending(recheck=True)
            return self.state

    # ─── Internals ───────────────────────────────────────────────────────────

    @contextmanager
    def _guard(self) -> Iterator[None]:
        if not self._busy.acquire(blocking=False):
            raise InvalidStateError("A submission is already being processed")
        try:
            yield
        finally:
            self._busy.release()

    def _set_state(self, state: RunnerState) -> None:
        self.state = state
        if self.on_state is not None:
            self.on_state(state)

    def _commit_pending(self, recheck: bool = False) -> None:
        outcome = self.state.pending
        if recheck and self.is_committed is not None and self.is_committed(self.user_id, outcome):
            logger.info(f"Resolution of {outcome.card_id} already committed, advancing")
        elif self.on_resolved is not None:
            try:
                self.on_resolved(self.user_id, outcome)
            except Exception as exc:
                logger.error(f"Resolution of {outcome.card_id} not committed: {exc}")
                raise
        self._set_state(advance(self.state, self.clock()))

