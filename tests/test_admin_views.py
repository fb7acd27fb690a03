"""
Tests for the access-gated admin and results pages.
"""

from django.contrib.auth import get_user_model
import pytest

from surveylink_app.surveys.models import (
    Survey,
    SurveyInvitation,
    SurveyQuestion,
    SurveyResponse,
)

User = get_user_model()
TEST_PASSWORD = "x"


@pytest.fixture
def admin_user(db):
    user = User.objects.create_user(username="admin", password=TEST_PASSWORD)
    user.profile.is_admin = True
    user.profile.save()
    return user


@pytest.fixture
def member(db):
    return User.objects.create_user(username="member", password=TEST_PASSWORD)


@pytest.fixture
def survey(admin_user):
    survey = Survey.objects.create(title="Canteen feedback", created_by=admin_user)
    question = SurveyQuestion.objects.create(
        survey=survey, text="Lunch quality", type="scale", scale_min=1, scale_max=5
    )
    for name, country, score in [("Ann", "GB", 4), ("Bo", "SE", 2)]:
        SurveyResponse.objects.create(
            survey=survey,
            respondent_id=name.lower(),
            respondent_name=name,
            country_code=country,
            role="HQ",
            answers={str(question.pk): score},
        )
    return survey


@pytest.mark.django_db
class TestResultsGate:
    def test_anonymous_redirected_to_login(self, client, survey):
        resp = client.get("/results/")
        assert resp.status_code == 302
        assert resp["Location"].startswith("/accounts/login/")

    def test_non_admin_sees_locked_page(self, client, member, survey):
        client.force_login(member)
        resp = client.get("/results/")
        assert resp.status_code == 403
        assert b"Access restricted" in resp.content

    def test_non_admin_cannot_manage(self, client, member):
        client.force_login(member)
        assert client.get("/manage/").status_code == 403


@pytest.mark.django_db
class TestResultsDashboard:
    def test_admin_sees_aggregates(self, client, admin_user, survey):
        client.force_login(admin_user)
        resp = client.get(f"/results/?survey={survey.pk}")
        assert resp.status_code == 200
        assert resp.context["results"].total_responses == 2
        assert resp.context["filters"] == {"countries": ["GB", "SE"], "roles": ["HQ"]}

    @pytest.mark.parametrize("requested", ["999999", "abc"])
    def test_unknown_survey_falls_back_to_latest(self, client, admin_user, survey, requested):
        client.force_login(admin_user)
        resp = client.get(f"/results/?survey={requested}")
        assert resp.status_code == 200
        assert resp.context["survey"] == survey
        assert b"Survey not found" in resp.content
        assert b"No surveys yet." not in resp.content

    def test_country_filter(self, client, admin_user, survey):
        client.force_login(admin_user)
        resp = client.get(f"/results/?survey={survey.pk}&country=SE")
        assert resp.context["results"].total_responses == 1
        assert resp.context["filter_query"] == "country=SE"

    def test_csv_export(self, client, admin_user, survey):
        client.force_login(admin_user)
        resp = client.get(f"/results/{survey.pk}/export.csv?country=GB")
        assert resp.status_code == 200
        assert 'filename="Canteen_feedback_results_' in resp["Content-Disposition"]
        lines = resp.content.decode().strip().splitlines()
        assert lines[0] == "Name,Country,Role,Timestamp,Lunch quality"
        assert lines[1].startswith("Ann,GB,HQ,")

    def test_delete_response(self, client, admin_user, survey):
        client.force_login(admin_user)
        target = survey.responses.get(respondent_name="Bo")
        resp = client.post(f"/results/responses/{target.pk}/delete/")
        assert resp.status_code == 302
        assert not SurveyResponse.objects.filter(pk=target.pk).exists()


@pytest.mark.django_db
class TestManagementPages:
    def test_create_survey(self, client, admin_user):
        client.force_login(admin_user)
        resp = client.post("/manage/", {"title": "Fresh", "description": ""})
        assert resp.status_code == 302
        assert Survey.objects.filter(title="Fresh", created_by=admin_user).exists()

    def test_survey_actions(self, client, admin_user, survey):
        client.force_login(admin_user)
        client.post(f"/manage/{survey.pk}/archive/")
        survey.refresh_from_db()
        assert not survey.is_active

        client.post(f"/manage/{survey.pk}/duplicate/")
        assert Survey.objects.filter(title="Copy of Canteen feedback").exists()

        client.post(f"/manage/{survey.pk}/delete/")
        assert not Survey.objects.filter(pk=survey.pk).exists()

    def test_invitation_lifecycle(self, client, admin_user, survey):
        client.force_login(admin_user)
        resp = client.post(
            f"/manage/{survey.pk}/invitations/",
            {"invitee_name": "Kim", "email": "", "max_uses": 3, "expires_in_days": 7},
        )
        assert resp.status_code == 302
        invitation = SurveyInvitation.objects.get()
        assert invitation.max_uses == 3
        assert invitation.expires_at is not None

        page = client.get(f"/manage/{survey.pk}/invitations/")
        assert page.status_code == 200
        assert page.context["rows"][0]["qr_code"].startswith("data:image/png;base64,")
        assert page.context["rows"][0]["state"] == "active"

        client.post(f"/manage/invitations/{invitation.pk}/toggle/")
        invitation.refresh_from_db()
        assert not invitation.is_active

        client.post(f"/manage/invitations/{invitation.pk}/delete/")
        assert not SurveyInvitation.objects.exists()
