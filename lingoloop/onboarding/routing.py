"""
Post-authentication routing.

Every entry path (sign-up, email confirmation, direct login) resolves the
destination the same way: users who have not finished onboarding start at the
onboarding welcome screen, everyone else lands on home.
"""

from __future__ import annotations

HOME_ROUTE = "/(tabs)/home"
ONBOARDING_WELCOME_ROUTE = "/(onboarding)/welcome"


def resolve_post_auth_destination(onboarding_complete: bool) -> str:
    """Return the route to load after a successful sign-in."""
    return HOME_ROUTE if onboarding_complete else ONBOARDING_WELCOME_ROUTE
