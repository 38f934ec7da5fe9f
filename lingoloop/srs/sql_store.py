"""
SQLAlchemy State Store.

Relational persistence for mastery records, the attempt log and onboarding
submissions. Mastery writes are compare-and-set on a version column:

    UPDATE mastery_records SET ..., version = :expected + 1
    WHERE user_id = :user AND card_id = :card AND version = :expected

A zero row count means another session got there first.
"""

from __future__ import annotations

from collections.abc import Generator, Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from pathlib import Path

from loguru import logger
from sqlalchemy import (
    Boolean,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
    create_engine,
    select,
    update,
)
from sqlalchemy.engine import Engine, make_url
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from lingoloop.clock import utcnow
from lingoloop.errors import CollaboratorError, ConcurrentUpdateError
from lingoloop.onboarding.schema import OnboardingSubmission
from lingoloop.session.types import AttemptLog

from .state_store import DueItem, MasteryRecord

# =============================================================================
# Models
# =============================================================================


class Base(DeclarativeBase):
    pass


class MasteryRow(Base):
    """Spaced repetition state per user per card."""

    __tablename__ = "mastery_records"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    user_id: Mapped[str] = mapped_column(String(128), nullable=False)
    card_id: Mapped[str] = mapped_column(String(128), nullable=False)
    last_result: Mapped[bool] = mapped_column(Boolean, nullable=False)
    consecutive_correct: Mapped[int] = mapped_column(Integer, default=0)
    interval_seconds: Mapped[int] = mapped_column(Integer, nullable=False)
    review_count: Mapped[int] = mapped_column(Integer, default=1)
    due_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    updated_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)
    version: Mapped[int] = mapped_column(Integer, nullable=False, default=1)

    __table_args__ = (
        UniqueConstraint("user_id", "card_id", name="uq_mastery_user_card"),
        Index("idx_mastery_user_due", "user_id", "due_at"),
    )

    def __repr__(self) -> str:
        return f"<MasteryRow user={self.user_id} card={self.card_id} v{self.version}>"


class AttemptRow(Base):
    """Append-only attempt log."""

    __tablename__ = "attempt_logs"

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    session_id: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    card_id: Mapped[str] = mapped_column(String(128), nullable=False)
    card_kind: Mapped[str] = mapped_column(String(32), nullable=False)
    attempt_number: Mapped[int] = mapped_column(Integer, nullable=False)
    answer: Mapped[str] = mapped_column(Text, default="")
    is_correct: Mapped[bool] = mapped_column(Boolean, nullable=False)
    elapsed_ms: Mapped[int] = mapped_column(Integer, default=0)
    error_type: Mapped[str | None] = mapped_column(String(32))
    awarded_xp: Mapped[int] = mapped_column(Integer, default=0)
    timestamp: Mapped[datetime] = mapped_column(DateTime, nullable=False)


class OnboardingRow(Base):
    """Latest onboarding submission per user, stored with its schema version."""

    __tablename__ = "onboarding_submissions"

    user_id: Mapped[str] = mapped_column(String(128), primary_key=True)
    version: Mapped[int] = mapped_column(Integer, nullable=False, index=True)
    payload: Mapped[str] = mapped_column(Text, nullable=False)
    saved_at: Mapped[datetime] = mapped_column(DateTime, nullable=False)


# =============================================================================
# Helpers
# =============================================================================


def _to_db(value: datetime) -> datetime:
    """Naive UTC for storage; SQLite drops tzinfo."""
    if value.tzinfo is not None:
        value = value.astimezone(timezone.utc).replace(tzinfo=None)
    return value


def _from_db(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def _record_from_row(row: MasteryRow) -> MasteryRecord:
    return MasteryRecord(
        user_id=row.user_id,
        card_id=row.card_id,
        last_result=row.last_result,
        consecutive_correct=row.consecutive_correct,
        interval_seconds=row.interval_seconds,
        due_at=_from_db(row.due_at),
        updated_at=_from_db(row.updated_at),
        review_count=row.review_count,
        version=row.version,
    )


def create_store_engine(database_url: str) -> Engine:
    """Create an engine, preparing the SQLite file location when needed."""
    url = make_url(database_url)
    if url.get_backend_name() == "sqlite":
        if url.database in (None, "", ":memory:"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
            )
        Path(url.database).expanduser().parent.mkdir(parents=True, exist_ok=True)
        return create_engine(database_url, connect_args={"check_same_thread": False})
    return create_engine(database_url, pool_pre_ping=True)


# =============================================================================
# State Store
# =============================================================================


class SqlStateStore:
    """
    SQLAlchemy-backed state persistence.

    Handles:
    - Mastery records with versioned compare-and-set writes
    - Attempt log rows, committed one by one
    - Onboarding submissions as versioned JSON payloads
    """

    def __init__(self, database_url: str | None = None, engine: Engine | None = None):
        """
        Initialize the state store.

        Args:
            database_url: SQLAlchemy URL (defaults to settings.database_url)
            engine: Pre-built engine, takes precedence over the URL
        """
        if engine is None:
            if database_url is None:
                from config import get_settings

                database_url = get_settings().database_url
            engine = create_store_engine(database_url)
        self.engine = engine
        self._session_factory = sessionmaker(bind=engine, autoflush=False, expire_on_commit=False)
        Base.metadata.create_all(bind=engine)
        logger.info(f"SqlStateStore initialized at {engine.url.render_as_string(hide_password=True)}")

    @contextmanager
    def session_scope(self) -> Generator[Session, None, None]:
        """Provide a transactional scope around a series of operations."""
        session = self._session_factory()
        try:
            yield session
            session.commit()
        except Exception:  # Intentionally broad - rollback on any error before re-raising
            session.rollback()
            raise
        finally:
            session.close()

    # ─── Mastery ─────────────────────────────────────────────────────────────

    def get_due_items(self, user_id: str, now: datetime) -> list[DueItem]:
        stmt = (
            select(MasteryRow.card_id, MasteryRow.due_at, MasteryRow.consecutive_correct)
            .where(MasteryRow.user_id == user_id, MasteryRow.due_at <= _to_db(now))
            .order_by(MasteryRow.due_at, MasteryRow.consecutive_correct, MasteryRow.card_id)
        )
        try:
            with self.session_scope() as session:
                rows = session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Due query failed for {user_id}: {exc}") from exc
        return [DueItem(card_id, _from_db(due_at), streak) for card_id, due_at, streak in rows]

    def count_due(self, user_id: str, now: datetime) -> int:
        return len(self.get_due_items(user_id, now))

    def get_mastery(self, user_id: str, card_id: str) -> MasteryRecord | None:
        stmt = select(MasteryRow).where(
            MasteryRow.user_id == user_id, MasteryRow.card_id == card_id
        )
        try:
            with self.session_scope() as session:
                row = session.execute(stmt).scalar_one_or_none()
                return _record_from_row(row) if row is not None else None
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Mastery read failed for {user_id}/{card_id}: {exc}") from exc

    def upsert_mastery(
        self,
        user_id: str,
        card_id: str,
        record: MasteryRecord,
        expected_version: int | None = None,
    ) -> MasteryRecord:
        new_version = (expected_version or 0) + 1
        values = {
            "last_result": record.last_result,
            "consecutive_correct": record.consecutive_correct,
            "interval_seconds": record.interval_seconds,
            "review_count": record.review_count,
            "due_at": _to_db(record.due_at),
            "updated_at": _to_db(record.updated_at),
            "version": new_version,
        }

        try:
            with self.session_scope() as session:
                if expected_version is None:
                    session.add(MasteryRow(user_id=user_id, card_id=card_id, **values))
                    session.flush()
                else:
                    result = session.execute(
                        update(MasteryRow)
                        .where(
                            MasteryRow.user_id == user_id,
                            MasteryRow.card_id == card_id,
                            MasteryRow.version == expected_version,
                        )
                        .values(**values)
                    )
                    if result.rowcount == 0:
                        raise ConcurrentUpdateError(user_id, card_id, expected_version)
        except IntegrityError as exc:
            raise ConcurrentUpdateError(user_id, card_id, expected_version) from exc
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Mastery write failed for {user_id}/{card_id}: {exc}") from exc

        return MasteryRecord(
            user_id=user_id,
            card_id=card_id,
            last_result=record.last_result,
            consecutive_correct=record.consecutive_correct,
            interval_seconds=record.interval_seconds,
            due_at=record.due_at,
            updated_at=record.updated_at,
            review_count=record.review_count,
            version=new_version,
        )

    # ─── Attempts ────────────────────────────────────────────────────────────

    def append(self, attempt: AttemptLog) -> None:
        row = AttemptRow(
            session_id=attempt.session_id,
            card_id=attempt.card_id,
            card_kind=attempt.card_kind.value,
            attempt_number=attempt.attempt_number,
            answer=attempt.answer,
            is_correct=attempt.is_correct,
            elapsed_ms=attempt.elapsed_ms,
            error_type=attempt.error_type,
            awarded_xp=attempt.awarded_xp,
            timestamp=_to_db(attempt.timestamp),
        )
        try:
            with self.session_scope() as session:
                session.add(row)
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Attempt append failed: {exc}") from exc

    def attempts_for(self, session_id: str) -> list[AttemptLog]:
        stmt = select(AttemptRow).where(AttemptRow.session_id == session_id).order_by(AttemptRow.id)
        try:
            with self.session_scope() as session:
                rows = session.execute(stmt).scalars().all()
                return [
                    AttemptLog(
                        session_id=row.session_id,
                        card_id=row.card_id,
                        card_kind=row.card_kind,
                        attempt_number=row.attempt_number,
                        answer=row.answer,
                        is_correct=row.is_correct,
                        elapsed_ms=row.elapsed_ms,
                        error_type=row.error_type,
                        awarded_xp=row.awarded_xp,
                        timestamp=_from_db(row.timestamp),
                    )
                    for row in rows
                ]
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Attempt read failed: {exc}") from exc

    # ─── Onboarding ──────────────────────────────────────────────────────────

    def save(self, user_id: str, submission: OnboardingSubmission) -> None:
        try:
            with self.session_scope() as session:
                row = session.get(OnboardingRow, user_id)
                if row is None:
                    row = OnboardingRow(user_id=user_id)
                    session.add(row)
                row.version = submission.version
                row.payload = submission.model_dump_json()
                row.saved_at = _to_db(utcnow())
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Onboarding save failed for {user_id}: {exc}") from exc
        logger.debug(f"Saved onboarding v{submission.version} for {user_id}")

    def load(self, user_id: str) -> OnboardingSubmission | None:
        try:
            with self.session_scope() as session:
                row = session.get(OnboardingRow, user_id)
                payload = row.payload if row is not None else None
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Onboarding load failed for {user_id}: {exc}") from exc
        if payload is None:
            return None
        return OnboardingSubmission.model_validate_json(payload)

    def iter_stale(self, version: int) -> Iterator[tuple[str, OnboardingSubmission]]:
        stmt = (
            select(OnboardingRow.user_id, OnboardingRow.payload)
            .where(OnboardingRow.version < version)
            .order_by(OnboardingRow.user_id)
        )
        try:
            with self.session_scope() as session:
                rows = session.execute(stmt).all()
        except SQLAlchemyError as exc:
            raise CollaboratorError(f"Stale onboarding query failed: {exc}") from exc
        for user_id, payload in rows:
            yield user_id, OnboardingSubmission.model_validate_json(payload)
