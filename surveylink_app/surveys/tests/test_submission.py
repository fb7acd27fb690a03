"""
Tests for the submission coordinator: redemption limits, races and
increment failures.
"""

from datetime import timedelta
import logging

from django.contrib.auth import get_user_model
from django.db import DatabaseError
from django.utils import timezone
import pytest

from surveylink_app.surveys.exceptions import (
    InvitationExhausted,
    InvitationExpired,
    InvitationInactive,
    InvitationNotFound,
    SurveyClosed,
    ValidationFailure,
)
from surveylink_app.surveys.models import (
    Survey,
    SurveyInvitation,
    SurveyQuestion,
    SurveyResponse,
)
from surveylink_app.surveys.services.invitation_service import create_invitation
from surveylink_app.surveys.services.submission_service import (
    open_invitation,
    submit_response,
)
from surveylink_app.surveys.store import SurveyStore

User = get_user_model()
TEST_PASSWORD = "x"


@pytest.fixture
def survey(db):
    s = Survey.objects.create(title="Claims process review")
    SurveyQuestion.objects.create(
        survey=s, text="How satisfied are you?", type="scale", scale_min=1, scale_max=5
    )
    return s


def payload_for(survey, name="Ada Lovelace", score=4):
    question = survey.questions.get()
    return {
        "respondent_name": name,
        "country_code": "GB",
        "role": "Claims",
        "answers": {str(question.id): score},
    }


@pytest.mark.django_db
class TestSubmitResponse:
    def test_successful_submission_persists_and_counts(self, survey):
        inv = create_invitation(survey, max_uses=1)

        result = submit_response(survey.pk, inv.token, payload_for(survey))

        assert result.usage_recorded
        response = SurveyResponse.objects.get()
        assert response.pk == result.response.pk
        assert response.invitation_id == inv.pk
        assert response.user_id is None
        assert response.respondent_id == "ada_lovelace"
        assert response.timestamp is not None
        inv.refresh_from_db()
        assert inv.used_count == 1

    def test_signed_in_user_is_recorded(self, survey):
        user = User.objects.create_user(username="respondent", password=TEST_PASSWORD)
        inv = create_invitation(survey)
        result = submit_response(survey.pk, inv.token, payload_for(survey), user=user)
        assert result.response.user_id == user.pk

    def test_more_attempts_than_uses_persist_exactly_max_uses(self, survey):
        inv = create_invitation(survey, max_uses=2)

        outcomes = []
        for i in range(5):
            try:
                submit_response(survey.pk, inv.token, payload_for(survey, name=f"R {i}"))
                outcomes.append("ok")
            except InvitationExhausted:
                outcomes.append("exhausted")

        assert outcomes == ["ok", "ok", "exhausted", "exhausted", "exhausted"]
        assert SurveyResponse.objects.count() == 2
        inv.refresh_from_db()
        assert inv.used_count == 2

    def test_unlimited_invitation_accepts_every_submission(self, survey):
        inv = create_invitation(survey, unlimited=True)
        for i in range(4):
            submit_response(survey.pk, inv.token, payload_for(survey, name=f"R {i}"))
        inv.refresh_from_db()
        assert inv.used_count == 4
        assert SurveyResponse.objects.count() == 4

    def test_lost_race_rolls_back_the_response(self, survey):
        """Another request redeems the last use after our check passed."""
        inv = create_invitation(survey, max_uses=1)

        class RacingStore(SurveyStore):
            def insert_response(self, data):
                response = super().insert_response(data)
                # Competing redemption commits between our check and our increment
                SurveyInvitation.objects.filter(pk=inv.pk).update(used_count=1)
                return response

        with pytest.raises(InvitationExhausted):
            submit_response(
                survey.pk, inv.token, payload_for(survey), store=RacingStore()
            )

        assert SurveyResponse.objects.count() == 0

    def test_increment_failure_is_logged_and_response_kept(
        self, survey, settings, caplog
    ):
        settings.SURVEYLINK_USAGE_INCREMENT_RETRIES = 3
        inv = create_invitation(survey, max_uses=1)
        calls = []

        class FailingStore(SurveyStore):
            def conditionally_increment_usage(self, invitation_id):
                calls.append(invitation_id)
                raise DatabaseError("connection reset")

        with caplog.at_level(logging.WARNING):
            result = submit_response(
                survey.pk, inv.token, payload_for(survey), store=FailingStore()
            )

        assert not result.usage_recorded
        assert len(calls) == 3
        assert SurveyResponse.objects.filter(pk=result.response.pk).exists()
        inv.refresh_from_db()
        assert inv.used_count == 0
        assert any(
            r.levelno == logging.ERROR and "was not recorded" in r.getMessage()
            for r in caplog.records
        )

    def test_increment_retry_recovers(self, survey):
        inv = create_invitation(survey, max_uses=1)

        class FlakyStore(SurveyStore):
            failures = 1

            def conditionally_increment_usage(self, invitation_id):
                if self.failures:
                    self.failures -= 1
                    raise DatabaseError("deadlock detected")
                return super().conditionally_increment_usage(invitation_id)

        result = submit_response(
            survey.pk, inv.token, payload_for(survey), store=FlakyStore()
        )

        assert result.usage_recorded
        inv.refresh_from_db()
        assert inv.used_count == 1

    def test_expired_invitation_rejected_without_write(self, survey):
        inv = create_invitation(
            survey, max_uses=5, expires_at=timezone.now() - timedelta(minutes=1)
        )
        with pytest.raises(InvitationExpired):
            submit_response(survey.pk, inv.token, payload_for(survey))
        assert SurveyResponse.objects.count() == 0

    def test_inactive_invitation_rejected(self, survey):
        inv = create_invitation(survey)
        inv.is_active = False
        inv.save()
        with pytest.raises(InvitationInactive):
            submit_response(survey.pk, inv.token, payload_for(survey))

    def test_token_from_another_survey_is_not_found(self, survey):
        other = Survey.objects.create(title="Other")
        inv = create_invitation(other)
        with pytest.raises(InvitationNotFound):
            submit_response(survey.pk, inv.token, payload_for(survey))
        inv.refresh_from_db()
        assert inv.used_count == 0

    @pytest.mark.parametrize("survey_id", [999999, "abc", None])
    def test_unknown_survey_is_not_found(self, survey, survey_id):
        inv = create_invitation(survey)
        with pytest.raises(InvitationNotFound):
            submit_response(survey_id, inv.token, payload_for(survey))

    def test_archived_survey_is_closed(self, survey):
        inv = create_invitation(survey)
        survey.is_active = False
        survey.save()
        with pytest.raises(SurveyClosed):
            submit_response(survey.pk, inv.token, payload_for(survey))

    def test_invalid_payload_rejected_before_any_write(self, survey):
        inv = create_invitation(survey)
        with pytest.raises(ValidationFailure) as exc:
            submit_response(survey.pk, inv.token, payload_for(survey, score=9))
        assert any(k.startswith("answers.") for k in exc.value.errors)
        assert SurveyResponse.objects.count() == 0
        inv.refresh_from_db()
        assert inv.used_count == 0


@pytest.mark.django_db
class TestOpenInvitation:
    def test_returns_survey_and_invitation(self, survey):
        inv = create_invitation(survey)
        access = open_invitation(str(survey.pk), inv.token)
        assert access.survey == survey
        assert access.invitation == inv

    def test_does_not_consume_a_use(self, survey):
        inv = create_invitation(survey, max_uses=1)
        open_invitation(survey.pk, inv.token)
        open_invitation(survey.pk, inv.token)
        inv.refresh_from_db()
        assert inv.used_count == 0
