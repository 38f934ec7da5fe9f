"""
Study Service.

Wires the learning loop together for the CLI:
- Onboarding answers -> versioned submission saved for the user
- Lesson and review plans -> SessionRunner bound to the attempt sink
- Resolved cards -> scheduler commit -> next review plan sees them
"""

from __future__ import annotations

from collections.abc import Mapping
from datetime import datetime
from pathlib import Path
from typing import Any

from loguru import logger

from lingoloop.clock import Clock, utcnow
from lingoloop.content import CachedCatalog, CatalogReader, ContentCatalog
from lingoloop.onboarding import (
    OnboardingSignals,
    OnboardingSubmission,
    build_submission,
    is_stale,
    normalize,
    rederive,
    resolve_post_auth_destination,
)
from lingoloop.session import (
    CardOutcome,
    PlanConfig,
    RunnerState,
    SessionPlan,
    SessionPlanBuilder,
    SessionRunner,
    SessionStore,
)
from lingoloop.session.runner import DEFAULT_RETRY_CAP
from lingoloop.srs import MasteryRecord, MasteryScheduler, SchedulerConfig, SqlStateStore


class StudyService:
    """
    High-level operations over one state store and one catalog.

    `store` provides mastery, attempt and onboarding persistence
    (InMemoryStateStore or SqlStateStore).
    """

    def __init__(
        self,
        store: Any,
        catalog: CatalogReader,
        scheduler: MasteryScheduler | None = None,
        builder: SessionPlanBuilder | None = None,
        session_store: SessionStore | None = None,
        retry_cap: int = DEFAULT_RETRY_CAP,
        clock: Clock = utcnow,
    ):
        self.store = store
        self.catalog = catalog
        self.clock = clock
        self.scheduler = scheduler or MasteryScheduler(store, clock=clock)
        self.builder = builder or SessionPlanBuilder(catalog, store, clock=clock)
        self.session_store = session_store
        self.retry_cap = retry_cap

    @classmethod
    def from_settings(cls, settings=None) -> StudyService:
        """Build the service from configuration (SQL store, JSON content)."""
        if settings is None:
            from config import get_settings

            settings = get_settings()

        store = SqlStateStore(settings.database_url)
        catalog = CachedCatalog(
            ContentCatalog.from_dir(Path(settings.content_dir).expanduser()),
            ttl_seconds=settings.catalog_cache_ttl_seconds,
        )
        return cls(
            store=store,
            catalog=catalog,
            scheduler=MasteryScheduler(store, SchedulerConfig.from_settings(settings)),
            builder=SessionPlanBuilder(catalog, store, PlanConfig.from_settings(settings)),
            session_store=SessionStore(
                Path(settings.session_dir).expanduser(),
                expiry_hours=settings.session_expiry_hours,
            ),
            **settings.get_runner_config(),
        )

    # ─── Onboarding ──────────────────────────────────────────────────────────

    def submit_onboarding(self, user_id: str, raw: Mapping[str, Any]) -> OnboardingSubmission:
        """
        Validate answers, derive the submission and save it for the user.

        Raises:
            ValidationError: if the answers fail the schema
        """
        submission = build_submission(normalize(raw))
        self.store.save(user_id, submission)
        logger.info(f"Onboarding saved for {user_id}: {', '.join(submission.tags)}")
        return submission

    def destination_for(self, user_id: str) -> str:
        """Post sign-in route for the user."""
        return resolve_post_auth_destination(self.store.load(user_id) is not None)

    def signals_for(self, user_id: str) -> OnboardingSignals:
        """Stored signals, re-derived when stale; defaults before onboarding."""
        submission = self.store.load(user_id)
        if submission is None:
            return OnboardingSignals()
        if is_stale(submission):
            submission = rederive(submission)
            self.store.save(user_id, submission)
            logger.info(f"Re-derived stale onboarding for {user_id}")
        return submission.signals

    # ─── Sessions ────────────────────────────────────────────────────────────

    def start_lesson(
        self,
        user_id: str,
        lesson_id: str,
        session_id: str | None = None,
    ) -> SessionRunner:
        """
        Build a lesson plan and start a runner on it.

        Raises:
            NotFoundError: if the lesson does not exist
        """
        plan = self.builder.build_lesson_plan(
            lesson_id,
            self.signals_for(user_id),
            user_id=user_id,
            session_id=session_id,
        )
        return self._start(user_id, plan)

    def start_review(self, user_id: str, session_id: str | None = None) -> SessionRunner:
        """Build a review plan from the user's due items and start a runner on it."""
        plan = self.builder.build_review_plan(
            user_id,
            self.signals_for(user_id),
            now=self.clock(),
            session_id=session_id,
        )
        return self._start(user_id, plan)

    def resume(self, user_id: str, state: RunnerState | None = None) -> SessionRunner | None:
        """
        Continue a saved session.

        Args:
            user_id: Learner the session belongs to
            state: State to resume (defaults to the latest saved session)

        Returns:
            SessionRunner at the saved card, or None if nothing to resume
        """
        if state is None:
            if self.session_store is None:
                return None
            saved = self.session_store.get_latest(user_id)
            if saved is None:
                return None
            state = saved.state

        runner = self._runner(user_id)
        runner.resume(state)
        return runner

    def due_count(self, user_id: str, now: datetime | None = None) -> int:
        return len(self.store.get_due_items(user_id, now or self.clock()))

    # ─── Internals ───────────────────────────────────────────────────────────

    def _runner(self, user_id: str) -> SessionRunner:
        return SessionRunner(
            user_id,
            sink=self.store,
            on_resolved=self._commit_outcome,
            retry_cap=self.retry_cap,
            clock=self.clock,
            on_state=self._persist_state(user_id) if self.session_store else None,
            is_committed=self._is_committed,
        )

    def _start(self, user_id: str, plan: SessionPlan) -> SessionRunner:
        runner = self._runner(user_id)
        runner.start(plan)
        return runner

    def _commit_outcome(self, user_id: str, outcome: CardOutcome) -> MasteryRecord:
        return self.scheduler.record_outcome(
            user_id,
            outcome.card_id,
            outcome.is_correct,
            now=outcome.resolved_at,
        )

    def _is_committed(self, user_id: str, outcome: CardOutcome) -> bool:
        # Commits are stamped with resolved_at, so a record this new already holds it
        record = self.store.get_mastery(user_id, outcome.card_id)
        return record is not None and record.updated_at >= outcome.resolved_at

    def _persist_state(self, user_id: str):
        def persist(state: RunnerState) -> None:
            if state.is_completed:
                self.session_store.delete(state.session_id)
            else:
                self.session_store.save(user_id, state)

        return persist
