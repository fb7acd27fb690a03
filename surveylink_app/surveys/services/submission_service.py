"""
Respondent flow: open a survey through an invitation and submit a response.

A submission is redeemed in one database transaction:

1. the invitation is re-checked against server time (the check made when the
   form was loaded is advisory only)
2. the response row is inserted
3. the invitation's ``used_count`` is incremented with a conditional UPDATE

If the conditional UPDATE matches no row, another request redeemed the last
use between steps 1 and 3; the transaction is rolled back and the caller gets
``InvitationExhausted``. If the UPDATE itself errors, it is retried inside a
savepoint and, failing that, logged while the response is kept.
"""

from __future__ import annotations

from dataclasses import dataclass
import logging
from typing import Any

from django.conf import settings
from django.db import DatabaseError

from ..exceptions import (
    InvitationExhausted,
    InvitationNotFound,
    PersistenceFailure,
    SurveyClosed,
)
from ..models import Survey, SurveyInvitation, SurveyResponse
from ..store import SurveyStore
from ..validation import validate_submission
from .invitation_service import check_invitation

logger = logging.getLogger(__name__)


@dataclass
class SurveyAccess:
    """A survey the holder of an invitation may currently answer."""

    survey: Survey
    invitation: SurveyInvitation


@dataclass
class SubmissionResult:
    response: SurveyResponse
    invitation: SurveyInvitation
    # False when the increment faulted and the counter may be behind
    usage_recorded: bool = True


def open_invitation(
    survey_id: int, token: str, store: SurveyStore | None = None
) -> SurveyAccess:
    """Check that ``token`` grants access to ``survey_id`` right now.

    Read-only: calling this any number of times never consumes a use.

    Raises:
        InvitationNotFound: No such survey, or no such token for this survey
        InvitationInactive / InvitationExpired / InvitationExhausted
        SurveyClosed: The invitation is fine but the survey is archived
        PersistenceFailure: Storage could not be reached
    """
    store = store or SurveyStore()

    try:
        survey_id = int(survey_id)
    except (TypeError, ValueError):
        raise InvitationNotFound() from None

    survey = store.find_survey(survey_id)
    if survey is None:
        raise InvitationNotFound()

    check = check_invitation(store, token, survey.pk)
    if not check.is_valid:
        logger.warning(
            f"Invitation rejected for survey {survey.pk}: {check.status.value}"
        )
        raise check.as_error()

    if not survey.is_active:
        raise SurveyClosed()

    return SurveyAccess(survey=survey, invitation=check.invitation)


def _increment_usage(store: SurveyStore, invitation_id: int) -> bool | None:
    """Run the conditional increment, retrying storage faults.

    Returns:
        The result of ``conditionally_increment_usage``, or None if every
        attempt raised
    """
    attempts = max(1, settings.SURVEYLINK_USAGE_INCREMENT_RETRIES)
    for attempt in range(1, attempts + 1):
        try:
            # Savepoint, so a failed UPDATE does not poison the outer transaction
            with store.atomic():
                return store.conditionally_increment_usage(invitation_id)
        except DatabaseError as e:
            logger.warning(
                f"Usage increment attempt {attempt}/{attempts} failed "
                f"for invitation {invitation_id}: {e}"
            )
    return None


def submit_response(
    survey_id: int,
    token: str,
    payload: dict[str, Any],
    *,
    user=None,
    store: SurveyStore | None = None,
) -> SubmissionResult:
    """Validate and persist one respondent submission.

    Args:
        survey_id: Survey the respondent claims to be answering
        token: Invitation token from the link
        payload: ``respondent_name``, ``country_code``, ``role``, ``answers``
        user: Signed-in user, if any; anonymous respondents leave it None
        store: Persistence collaborator (defaults to the ORM store)

    Returns:
        SubmissionResult with the saved response

    Raises:
        InvitationError: The specific reason the invitation cannot be used
        SurveyClosed: The survey is archived
        ValidationFailure: The payload is incomplete or out of range
        PersistenceFailure: The response could not be saved; safe to retry
    """
    store = store or SurveyStore()
    access = open_invitation(survey_id, token, store)
    survey, invitation = access.survey, access.invitation

    cleaned = validate_submission(store.list_questions(survey.pk), payload)

    user_id = user.pk if user is not None and user.is_authenticated else None

    try:
        with store.atomic():
            response = store.insert_response(
                {
                    **cleaned,
                    "survey_id": survey.pk,
                    "invitation_id": invitation.pk,
                    "user_id": user_id,
                }
            )
            incremented = _increment_usage(store, invitation.pk)
            if incremented is False:
                logger.warning(
                    f"Invitation {invitation.pk} reached its limit before "
                    f"response for survey {survey.pk} could be recorded"
                )
                raise InvitationExhausted()
    except DatabaseError as e:
        logger.error(f"Submission for survey {survey.pk} failed to commit: {e}")
        raise PersistenceFailure("Could not save the response") from e

    if incremented is None:
        logger.error(
            f"Response {response.pk} saved but usage for invitation "
            f"{invitation.pk} was not recorded"
        )
    else:
        logger.info(
            f"Response {response.pk} recorded for survey {survey.pk} "
            f"via invitation {invitation.pk}"
        )

    return SubmissionResult(
        response=response,
        invitation=invitation,
        usage_recorded=incremented is not None,
    )
