"""
Runner state persistence for lingoloop sessions.

Enables save/resume so a session interrupted by a crash or a closed terminal
picks up at the same card. Sessions are stored as JSON files in
~/.lingoloop/sessions/ (see settings.session_dir).
"""

from __future__ import annotations

from datetime import datetime, timedelta
from pathlib import Path

from loguru import logger
from pydantic import BaseModel
from pydantic import ValidationError as SchemaError

from lingoloop.clock import Clock, utcnow

from .runner import RunnerState


class SavedSession(BaseModel):
    """A runner state stamped with its owner and save time."""

    user_id: str
    saved_at: datetime
    state: RunnerState

    @property
    def session_id(self) -> str:
        return self.state.session_id

    def is_expired(self, now: datetime, expiry_hours: int) -> bool:
        return now - self.saved_at > timedelta(hours=expiry_hours)


class SessionStore:
    """
    Manages session persistence.

    Sessions are stored as JSON files named {session_id}.json. Completed
    sessions are deleted by the caller; only unfinished ones are resumed.
    """

    def __init__(
        self,
        session_dir: Path | None = None,
        expiry_hours: int | None = None,
        clock: Clock = utcnow,
    ):
        if session_dir is None or expiry_hours is None:
            from config import get_settings

            settings = get_settings()
            session_dir = session_dir or Path(settings.session_dir).expanduser()
            expiry_hours = expiry_hours or settings.session_expiry_hours
        self.session_dir = Path(session_dir)
        self.expiry_hours = expiry_hours
        self.clock = clock
        self.session_dir.mkdir(parents=True, exist_ok=True)

    def _path(self, session_id: str) -> Path:
        return self.session_dir / f"{session_id}.json"

    def _read(self, filepath: Path) -> SavedSession | None:
        try:
            return SavedSession.model_validate_json(filepath.read_text(encoding="utf-8"))
        except (OSError, SchemaError) as e:
            logger.warning(f"Unreadable session file {filepath.name}: {e}")
            return None

    def save(self, user_id: str, state: RunnerState) -> Path:
        """Save runner state to disk."""
        saved = SavedSession(user_id=user_id, saved_at=self.clock(), state=state)
        filepath = self._path(state.session_id)
        filepath.write_text(saved.model_dump_json(indent=2), encoding="utf-8")
        return filepath

    def load(self, session_id: str) -> SavedSession | None:
        """Load a specific session by ID."""
        filepath = self._path(session_id)
        if not filepath.exists():
            return None
        return self._read(filepath)

    def get_latest(self, user_id: str | None = None) -> SavedSession | None:
        """Get the most recent unfinished, non-expired session."""
        sessions = self.list_sessions(user_id)
        return sessions[0] if sessions else None

    def delete(self, session_id: str) -> bool:
        """Delete a session file."""
        filepath = self._path(session_id)
        if filepath.exists():
            filepath.unlink()
            return True
        return False

    def cleanup_expired(self) -> int:
        """Remove expired and corrupted session files."""
        now = self.clock()
        removed = 0
        for filepath in self.session_dir.glob("*.json"):
            saved = self._read(filepath)
            if saved is None or saved.is_expired(now, self.expiry_hours):
                filepath.unlink()
                removed += 1

        if removed:
            logger.info(f"Removed {removed} expired session files")
        return removed

    def list_sessions(self, user_id: str | None = None) -> list[SavedSession]:
        """List unfinished, non-expired sessions, newest first."""
        now = self.clock()
        sessions = []
        for filepath in self.session_dir.glob("*.json"):
            saved = self._read(filepath)
            if saved is None or saved.is_expired(now, self.expiry_hours):
                continue
            if saved.state.is_completed:
                continue
            if user_id is not None and saved.user_id != user_id:
                continue
            sessions.append(saved)

        return sorted(sessions, key=lambda s: s.saved_at, reverse=True)
