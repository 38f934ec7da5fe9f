"""
Sessions: plan building, running and resume.

Components:
- SessionPlanBuilder: lesson and review plans from content and mastery
- runner: explicit-state transitions and the SessionRunner driver
- SessionStore: JSON save/resume of runner state
"""

from .types import AttemptLog, CompletionSummary, KindBreakdown, SessionKind, SessionPlan
from .plan_builder import PlanConfig, SessionPlanBuilder, estimate_minutes
from .runner import CardOutcome, RunnerState, RunnerStatus, SessionRunner, SubmitResult
from .session_store import SavedSession, SessionStore

__all__ = [
    "AttemptLog",
    "CompletionSummary",
    "KindBreakdown",
    "SessionKind",
    "SessionPlan",
    "PlanConfig",
    "SessionPlanBuilder",
    "estimate_minutes",
    "CardOutcome",
    "RunnerState",
    "RunnerStatus",
    "SessionRunner",
    "SubmitResult",
    "SavedSession",
    "SessionStore",
]
