"""
End-to-end tests for the server-rendered respondent flow.

Tests cover:
- Landing without an invitation
- Opening a form without consuming a use
- Submitting, exhausting and expiring invitation links
- Re-rendering the form with validation errors
"""

from datetime import timedelta

from django.utils import timezone
import pytest

from surveylink_app.surveys.models import (
    Survey,
    SurveyInvitation,
    SurveyQuestion,
    SurveyResponse,
)


@pytest.fixture
def survey(db):
    survey = Survey.objects.create(title="Office move", description="Tell us *honestly*.")
    SurveyQuestion.objects.create(
        survey=survey, text="How happy are you?", type="scale", scale_min=1, scale_max=3
    )
    SurveyQuestion.objects.create(
        survey=survey,
        text="Which floors?",
        type="select",
        options=["1st", "2nd"],
        multiple_select=True,
        question_order=1,
    )
    return survey


@pytest.fixture
def invitation(survey):
    return SurveyInvitation.objects.create(
        survey=survey, token="flow-token", invitee_name="Sam Jones", max_uses=1
    )


def take_url(survey, token="flow-token", path="/"):
    return f"{path}?survey={survey.pk}&invite={token}"


def form_data(survey, **overrides):
    scale, select = survey.questions.all()
    data = {
        "respondent_name": "Sam Jones",
        "country_code": "GB",
        "role": "HQ",
        f"q_{scale.pk}": "2",
        f"q_{select.pk}": ["1st", "2nd"],
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestRespondentFlow:
    def test_no_invitation_shows_notice(self, client):
        resp = client.get("/")
        assert resp.status_code == 200
        assert b"Invitation required" in resp.content

    def test_form_prefills_invitee_and_keeps_use(self, client, survey, invitation):
        resp = client.get(take_url(survey))
        assert resp.status_code == 200
        assert b"Office move" in resp.content
        assert b"<em>honestly</em>" in resp.content
        assert b'value="Sam Jones"' in resp.content
        invitation.refresh_from_db()
        assert invitation.used_count == 0

    def test_take_path_serves_the_same_form(self, client, survey, invitation):
        resp = client.get(take_url(survey, path="/surveys/take/"))
        assert resp.status_code == 200
        assert b"How happy are you?" in resp.content

    def test_submit_redirects_to_thank_you(self, client, survey, invitation):
        resp = client.post(take_url(survey), form_data(survey))
        assert resp.status_code == 302
        assert resp["Location"] == "/surveys/thank-you/"

        stored = SurveyResponse.objects.get()
        assert stored.respondent_id == "sam_jones"
        assert stored.invitation == invitation
        assert sorted(stored.answers.values(), key=str) == [2, ["1st", "2nd"]]
        invitation.refresh_from_db()
        assert invitation.used_count == 1

    def test_used_up_link_is_unavailable(self, client, survey, invitation):
        client.post(take_url(survey), form_data(survey))

        resp = client.get(take_url(survey))
        assert resp.status_code == 302
        assert resp["Location"] == "/surveys/unavailable/?reason=exhausted"

        page = client.get(resp["Location"])
        assert b"maximum number of times" in page.content

    def test_expired_link_is_unavailable(self, client, survey, invitation):
        invitation.expires_at = timezone.now() - timedelta(days=1)
        invitation.save()
        resp = client.post(take_url(survey), form_data(survey))
        assert resp["Location"] == "/surveys/unavailable/?reason=expired"
        assert not SurveyResponse.objects.exists()

    def test_archived_survey_is_closed(self, client, survey, invitation):
        survey.is_active = False
        survey.save()
        resp = client.get(take_url(survey), follow=True)
        assert b"Survey closed" in resp.content

    def test_validation_errors_rerender_form(self, client, survey, invitation):
        scale, _ = survey.questions.all()
        resp = client.post(
            take_url(survey), form_data(survey, **{f"q_{scale.pk}": "7", "role": ""})
        )
        assert resp.status_code == 400
        assert b"How happy are you?" in resp.content
        assert b'class="error"' in resp.content
        assert not SurveyResponse.objects.exists()
        invitation.refresh_from_db()
        assert invitation.used_count == 0

    def test_put_not_allowed(self, client, survey, invitation):
        assert client.put(take_url(survey)).status_code == 405
