"""Access gate: which application views a session may reach.

Respondent pages are open to everyone holding an invitation link. Admin and
results pages need a signed-in user whose profile carries the admin flag.
"""

from enum import Enum


class AppView(str, Enum):
    SURVEY = "survey"
    ADMIN = "admin"
    RESULTS = "results"


class GateDecision(str, Enum):
    ALLOW = "allow"
    SIGN_IN_REQUIRED = "sign_in_required"
    LOCKED = "locked"


ADMIN_VIEWS = frozenset({AppView.ADMIN, AppView.RESULTS})


def is_admin(user) -> bool:
    """Return True if ``user`` is signed in and flagged as a survey admin."""
    if user is None or not getattr(user, "is_authenticated", False):
        return False
    if user.is_superuser:
        return True
    profile = getattr(user, "profile", None)
    return bool(profile and profile.is_admin)


def reachable_views(user) -> frozenset[AppView]:
    if is_admin(user):
        return frozenset(AppView)
    return frozenset({AppView.SURVEY})


def check_access(user, target: AppView) -> GateDecision:
    if target not in ADMIN_VIEWS:
        return GateDecision.ALLOW
    if user is None or not user.is_authenticated:
        return GateDecision.SIGN_IN_REQUIRED
    if target in reachable_views(user):
        return GateDecision.ALLOW
    return GateDecision.LOCKED
