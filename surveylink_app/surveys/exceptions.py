"""Errors raised by the survey services.

Invitation failures are user-facing and cannot be retried without a new
link. ``PersistenceFailure`` is transient and safe to surface as "try again".
``ValidationFailure`` is raised before any storage call is made.
"""

from __future__ import annotations


class SurveyLinkError(Exception):
    """Base class for survey service errors."""


class InvitationError(SurveyLinkError):
    status = "invalid"
    message = "This invitation link cannot be used."

    def __init__(self, message: str | None = None):
        super().__init__(message or self.message)
        self.message = message or self.message


class InvitationNotFound(InvitationError):
    status = "not_found"
    message = (
        "Invalid invitation link. Please contact the administrator for a new link."
    )


class InvitationInactive(InvitationError):
    status = "inactive"
    message = "This invitation link has been deactivated."


class InvitationExpired(InvitationError):
    status = "expired"
    message = "This invitation link has expired."


class InvitationExhausted(InvitationError):
    status = "exhausted"
    message = "This invitation link has already been used the maximum number of times."


class PersistenceFailure(SurveyLinkError):
    """Storage was unreachable or rejected the write; the caller may retry."""


class ValidationFailure(SurveyLinkError):
    """A submission payload is malformed.

    Attributes:
        errors: Mapping of field name (or ``answers.<question id>``) to message
    """

    def __init__(self, errors: dict[str, str]):
        self.errors = dict(errors)
        first = next(iter(self.errors.values()), "Invalid submission")
        super().__init__(first)


class SurveyClosed(SurveyLinkError):
    status = "closed"
    message = "This survey is no longer accepting responses."
