"""
State Store contracts and the in-memory implementation.

Provides persistence for:
- Mastery records per (user, card) with optimistic versioning
- Attempt log, appended as attempts happen
- Onboarding submissions per user

The Scheduler is the only writer of mastery records. Every write names the
version it read; a write against a newer version raises ConcurrentUpdateError
so two sessions resolving the same card cannot lose an update.
"""

from __future__ import annotations

from collections.abc import Iterator
from dataclasses import dataclass, replace
from datetime import datetime
from threading import Lock
from typing import TYPE_CHECKING, Protocol

from loguru import logger

from lingoloop.errors import ConcurrentUpdateError
from lingoloop.onboarding.schema import OnboardingSubmission

if TYPE_CHECKING:
    from lingoloop.session.types import AttemptLog

# =============================================================================
# Data Classes
# =============================================================================


@dataclass(frozen=True)
class MasteryRecord:
    """Spaced repetition state for a single user and card."""

    user_id: str
    card_id: str
    last_result: bool
    consecutive_correct: int
    interval_seconds: int
    due_at: datetime
    updated_at: datetime
    review_count: int = 1
    version: int = 0  # 0 until persisted

    def is_due(self, now: datetime) -> bool:
        return self.due_at <= now

    def overdue_seconds(self, now: datetime) -> float:
        """Seconds past the scheduled review time."""
        return max(0.0, (now - self.due_at).total_seconds())


@dataclass(frozen=True)
class DueItem:
    """A card whose review time has passed."""

    card_id: str
    due_at: datetime
    consecutive_correct: int


# =============================================================================
# Contracts
# =============================================================================


class MasteryStore(Protocol):
    def get_due_items(self, user_id: str, now: datetime) -> list[DueItem]:
        ...

    def get_mastery(self, user_id: str, card_id: str) -> MasteryRecord | None:
        ...

    def upsert_mastery(
        self,
        user_id: str,
        card_id: str,
        record: MasteryRecord,
        expected_version: int | None = None,
    ) -> MasteryRecord:
        """
        Write a record if the stored version still equals `expected_version`.

        `expected_version=None` means the caller saw no record. Returns the
        stored record carrying its new version.
        """
        ...


class AttemptSink(Protocol):
    def append(self, attempt: AttemptLog) -> None:
        ...


class OnboardingSink(Protocol):
    def save(self, user_id: str, submission: OnboardingSubmission) -> None:
        ...

    def load(self, user_id: str) -> OnboardingSubmission | None:
        ...

    def iter_stale(self, version: int) -> Iterator[tuple[str, OnboardingSubmission]]:
        ...


# =============================================================================
# In-Memory State Store
# =============================================================================


class InMemoryStateStore:
    """
    Process-local implementation of all three stores.

    Compare-and-set on a mastery record holds a lock for that (user, card)
    key only, so unrelated cards never contend.
    """

    def __init__(self):
        self._records: dict[tuple[str, str], MasteryRecord] = {}
        self._key_locks: dict[tuple[str, str], Lock] = {}
        self._locks_guard = Lock()
        self._attempts: list[AttemptLog] = []
        self._submissions: dict[str, OnboardingSubmission] = {}

    def _lock_for(self, key: tuple[str, str]) -> Lock:
        with self._locks_guard:
            lock = self._key_locks.get(key)
            if lock is None:
                lock = self._key_locks[key] = Lock()
            return lock

    # ─── Mastery ─────────────────────────────────────────────────────────────

    def get_due_items(self, user_id: str, now: datetime) -> list[DueItem]:
        return [
            DueItem(record.card_id, record.due_at, record.consecutive_correct)
            for (owner, _), record in list(self._records.items())
            if owner == user_id and record.is_due(now)
        ]

    def get_mastery(self, user_id: str, card_id: str) -> MasteryRecord | None:
        return self._records.get((user_id, card_id))

    def upsert_mastery(
        self,
        user_id: str,
        card_id: str,
        record: MasteryRecord,
        expected_version: int | None = None,
    ) -> MasteryRecord:
        key = (user_id, card_id)
        with self._lock_for(key):
            current = self._records.get(key)
            current_version = current.version if current else None
            if current_version != expected_version:
                raise ConcurrentUpdateError(user_id, card_id, expected_version)
            stored = replace(record, version=(expected_version or 0) + 1)
            self._records[key] = stored
        return stored

    def list_records(self, user_id: str) -> list[MasteryRecord]:
        return [record for (owner, _), record in self._records.items() if owner == user_id]

    # ─── Attempts ────────────────────────────────────────────────────────────

    def append(self, attempt: AttemptLog) -> None:
        self._attempts.append(attempt)

    def attempts_for(self, session_id: str) -> list[AttemptLog]:
        return [attempt for attempt in self._attempts if attempt.session_id == session_id]

    # ─── Onboarding ──────────────────────────────────────────────────────────

    def save(self, user_id: str, submission: OnboardingSubmission) -> None:
        self._submissions[user_id] = submission
        logger.debug(f"Saved onboarding v{submission.version} for {user_id}")

    def load(self, user_id: str) -> OnboardingSubmission | None:
        return self._submissions.get(user_id)

    def iter_stale(self, version: int) -> Iterator[tuple[str, OnboardingSubmission]]:
        for user_id, submission in list(self._submissions.items()):
            if submission.version < version:
                yield user_id, submission
