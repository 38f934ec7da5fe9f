"""
Spaced repetition: mastery records, stores and the review scheduler.

Components:
- MasteryScheduler: interval rule and the only writer of mastery records
- InMemoryStateStore: process-local store with per-key locking
- SqlStateStore: SQLAlchemy store with versioned writes
"""

from .scheduler import MasteryScheduler, SchedulerConfig
from .sql_store import SqlStateStore
from .state_store import (
    AttemptSink,
    DueItem,
    InMemoryStateStore,
    MasteryRecord,
    MasteryStore,
    OnboardingSink,
)

__all__ = [
    "MasteryScheduler",
    "SchedulerConfig",
    "SqlStateStore",
    "AttemptSink",
    "DueItem",
    "InMemoryStateStore",
    "MasteryRecord",
    "MasteryStore",
    "OnboardingSink",
]
