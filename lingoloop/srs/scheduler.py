"""
Mastery Scheduler (review engine).

Spaced repetition rule per resolved card:
- First observation: seeded with the minimum interval whatever the result,
  so a single answer never produces a long gap
- Correct: streak + 1, interval grows by the growth factor up to the maximum
- Incorrect: streak resets, item returns after the minimum interval

The interval is a pure function of (consecutive_correct, last_result), so
replaying the same outcome history always yields the same records.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timedelta

from loguru import logger

from lingoloop.clock import Clock, utcnow
from lingoloop.errors import ConcurrentUpdateError

from .state_store import MasteryRecord, MasteryStore

# =============================================================================
# Configuration
# =============================================================================


@dataclass
class SchedulerConfig:
    """Configuration for the review interval rule."""

    min_interval_minutes: int = 10
    growth_factor: float = 3.0
    max_interval_days: int = 180
    max_write_retries: int = 5  # Optimistic write attempts per outcome

    def __post_init__(self):
        if self.max_write_retries < 1:
            raise ValueError("max_write_retries must be at least 1")

    @classmethod
    def from_settings(cls, settings=None) -> SchedulerConfig:
        if settings is None:
            from config import get_settings

            settings = get_settings()
        return cls(**settings.get_srs_config())

    @property
    def min_interval_seconds(self) -> int:
        return self.min_interval_minutes * 60

    @property
    def max_interval_seconds(self) -> int:
        return self.max_interval_days * 86400


# =============================================================================
# Scheduler
# =============================================================================


class MasteryScheduler:
    """
    Sole writer of mastery records.

    Called once per resolved card (a correct answer, or the retry cap
    reached), never per raw attempt.
    """

    def __init__(
        self,
        store: MasteryStore,
        config: SchedulerConfig | None = None,
        clock: Clock = utcnow,
    ):
        """
        Initialize the scheduler.

        Args:
            store: MasteryStore holding per-user records
            config: Interval rule configuration (uses defaults if None)
            clock: Source of the current time
        """
        self.store = store
        self.config = config or SchedulerConfig()
        self.clock = clock

    def interval_for(self, consecutive_correct: int, last_result: bool) -> int:
        """
        Review interval in seconds for a streak and last result.

        Args:
            consecutive_correct: Current streak of correct resolutions
            last_result: Whether the latest resolution was correct

        Returns:
            Interval in seconds, between the configured minimum and maximum
        """
        minimum = self.config.min_interval_seconds
        if not last_result or consecutive_correct <= 1:
            return minimum
        interval = minimum * self.config.growth_factor ** (consecutive_correct - 1)
        return int(min(interval, self.config.max_interval_seconds))

    def next_record(
        self,
        current: MasteryRecord | None,
        user_id: str,
        card_id: str,
        is_correct: bool,
        now: datetime,
    ) -> MasteryRecord:
        """Compute the record that follows `current` after one outcome."""
        if current is None:
            consecutive = 1 if is_correct else 0
            interval = self.config.min_interval_seconds
            review_count = 1
        else:
            consecutive = current.consecutive_correct + 1 if is_correct else 0
            interval = self.interval_for(consecutive, is_correct)
            review_count = current.review_count + 1

        return MasteryRecord(
            user_id=user_id,
            card_id=card_id,
            last_result=is_correct,
            consecutive_correct=consecutive,
            interval_seconds=interval,
            due_at=now + timedelta(seconds=interval),
            updated_at=now,
            review_count=review_count,
            version=current.version if current else 0,
        )

    def record_outcome(
        self,
        user_id: str,
        card_id: str,
        is_correct: bool,
        now: datetime | None = None,
    ) -> MasteryRecord:
        """
        Record a resolved card and update its schedule.

        Args:
            user_id: Learner the record belongs to
            card_id: Stable card (content item) id
            is_correct: Final result for the card
            now: Resolution time (defaults to the clock)

        Returns:
            The stored MasteryRecord

        Raises:
            ConcurrentUpdateError: if every optimistic write lost a race
        """
        now = now or self.clock()
        conflict: ConcurrentUpdateError | None = None

        for attempt in range(1, self.config.max_write_retries + 1):
            current = self.store.get_mastery(user_id, card_id)
            record = self.next_record(current, user_id, card_id, is_correct, now)
            try:
                stored = self.store.upsert_mastery(
                    user_id,
                    card_id,
                    record,
                    expected_version=current.version if current else None,
                )
            except ConcurrentUpdateError as exc:
                conflict = exc
                logger.warning(
                    f"Mastery write conflict for {user_id}/{card_id} "
                    f"(attempt {attempt}/{self.config.max_write_retries})"
                )
                continue

            logger.debug(
                f"Recorded outcome for {card_id}: correct={is_correct}, "
                f"streak={stored.consecutive_correct}, due_at={stored.due_at.isoformat()}"
            )
            return stored

        if conflict is None:
            conflict = ConcurrentUpdateError(user_id, card_id, None)
        raise conflict
