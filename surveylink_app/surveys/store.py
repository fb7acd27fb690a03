"""
ORM-backed persistence for the respondent flow.

The invitation redemption logic only talks to storage through ``SurveyStore``
so that the storage-level guarantees it relies on are explicit:

- invitation lookup is scoped by survey as well as token
- usage increments are a single conditional UPDATE, never read-then-write
- ``now()`` is the server clock, never a client-supplied timestamp
"""

from __future__ import annotations

from collections.abc import Sequence
from contextlib import AbstractContextManager
from datetime import datetime
import logging
from typing import Any

from django.db import DatabaseError, transaction
from django.db.models import F, Q
from django.utils import timezone

from .exceptions import PersistenceFailure
from .models import Survey, SurveyInvitation, SurveyQuestion, SurveyResponse

logger = logging.getLogger(__name__)

RESPONSE_FIELDS = (
    "survey_id",
    "invitation_id",
    "user_id",
    "respondent_id",
    "respondent_name",
    "country_code",
    "role",
    "answers",
    "timestamp",
)


class SurveyStore:
    def now(self) -> datetime:
        return timezone.now()

    def atomic(self) -> AbstractContextManager:
        return transaction.atomic()

    def find_survey(self, survey_id: int) -> Survey | None:
        try:
            return Survey.objects.filter(pk=survey_id).first()
        except DatabaseError as e:
            logger.error(f"Survey lookup failed for {survey_id}: {e}")
            raise PersistenceFailure("Could not load the survey") from e

    def find_invitation(self, token: str, survey_id: int) -> SurveyInvitation | None:
        if not token or survey_id is None:
            return None
        try:
            return SurveyInvitation.objects.filter(
                token=token, survey_id=survey_id
            ).first()
        except DatabaseError as e:
            logger.error(f"Invitation lookup failed for survey {survey_id}: {e}")
            raise PersistenceFailure("Could not look up the invitation") from e

    def insert_response(self, data: dict[str, Any]) -> SurveyResponse:
        """Persist a response row; ``timestamp`` defaults to submission time."""
        values = {k: data[k] for k in RESPONSE_FIELDS if k in data}
        if values.get("timestamp") is None:
            values["timestamp"] = self.now()
        try:
            return SurveyResponse.objects.create(**values)
        except DatabaseError as e:
            logger.error(
                f"Response insert failed for survey {values.get('survey_id')}: {e}"
            )
            raise PersistenceFailure("Could not save the response") from e

    def conditionally_increment_usage(self, invitation_id: int) -> bool:
        """Increment ``used_count`` by one if the invitation is still under its limit.

        Returns:
            True if a row was updated, False if the limit had already been reached

        The database serialises competing UPDATEs on the same row, so at most
        ``max_uses`` calls can ever return True.
        """
        updated = (
            SurveyInvitation.objects.filter(pk=invitation_id)
            .filter(Q(max_uses__isnull=True) | Q(used_count__lt=F("max_uses")))
            .update(used_count=F("used_count") + 1)
        )
        return updated == 1

    def list_responses(
        self,
        survey_id: int,
        country: str | None = None,
        role: str | None = None,
    ) -> Sequence[SurveyResponse]:
        qs = SurveyResponse.objects.filter(survey_id=survey_id)
        if country:
            qs = qs.filter(country_code=country)
        if role:
            qs = qs.filter(role=role)
        return list(qs)

    def list_questions(self, survey_id: int) -> Sequence[SurveyQuestion]:
        return list(
            SurveyQuestion.objects.filter(survey_id=survey_id).order_by(
                "question_order", "id"
            )
        )
