"""
Error taxonomy for the learning loop.

- ValidationError: malformed or out-of-domain onboarding input
- NotFoundError: unknown lesson, session or card id
- InvalidStateError: runner operation in the wrong state
- ConcurrentUpdateError: optimistic write lost a race on a mastery record
- CollaboratorError: store or catalog unavailable (never retried here)
"""

from __future__ import annotations

from collections.abc import Mapping


class LingoLoopError(Exception):
    """Base class for domain errors."""

    code = "LINGOLOOP_ERROR"


class ValidationError(LingoLoopError):
    """Raised when onboarding answers fail schema validation."""

    code = "VALIDATION_ERROR"

    def __init__(self, fields: Mapping[str, str]):
        self.fields = dict(fields)
        detail = "; ".join(f"{name}: {reason}" for name, reason in self.fields.items())
        super().__init__(f"Invalid onboarding answers ({detail})")


class NotFoundError(LingoLoopError):
    """Raised when a required entity does not exist."""

    code = "ENTITY_NOT_FOUND"

    def __init__(self, entity_type: str, identifier: str | None = None):
        self.entity_type = entity_type
        self.identifier = identifier
        if identifier:
            super().__init__(f"{entity_type} not found: {identifier}")
        else:
            super().__init__(f"{entity_type} not found")


class InvalidStateError(LingoLoopError):
    """Raised when an operation is attempted in a state that forbids it."""

    code = "INVALID_STATE"


class ConcurrentUpdateError(LingoLoopError):
    """Raised when a versioned mastery write finds a newer record."""

    code = "CONCURRENT_UPDATE"

    def __init__(self, user_id: str, card_id: str, expected_version: int | None):
        self.user_id = user_id
        self.card_id = card_id
        self.expected_version = expected_version
        super().__init__(
            f"Mastery record {user_id}/{card_id} changed "
            f"(expected version {expected_version})"
        )


class CollaboratorError(LingoLoopError):
    """Raised when a backing store or catalog cannot serve a request."""

    code = "COLLABORATOR_UNAVAILABLE"
