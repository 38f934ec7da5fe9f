"""
Onboarding: answers -> personalization signals.

Components:
- schema: versioned answer variants and submission models
- signal_mapper: normalize(), build_submission(), compute_next_selection()
- routing: post-auth destination contract
"""

from .routing import HOME_ROUTE, ONBOARDING_WELCOME_ROUTE, resolve_post_auth_destination
from .schema import (
    ONBOARDING_SCHEMA_VERSION,
    OnboardingAnswers,
    OnboardingSignals,
    OnboardingSubmission,
    Question,
)
from .signal_mapper import (
    build_submission,
    compute_next_selection,
    is_stale,
    normalize,
    rederive,
    rederive_stale_submissions,
)

__all__ = [
    "ONBOARDING_SCHEMA_VERSION",
    "OnboardingAnswers",
    "OnboardingSignals",
    "OnboardingSubmission",
    "Question",
    "normalize",
    "build_submission",
    "compute_next_selection",
    "is_stale",
    "rederive",
    "rederive_stale_submissions",
    "HOME_ROUTE",
    "ONBOARDING_WELCOME_ROUTE",
    "resolve_post_auth_destination",
]
