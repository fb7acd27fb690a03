from django.contrib.auth import get_user_model
import pytest

from surveylink_app.surveys.models import Survey, SurveyInvitation

User = get_user_model()
TEST_PASSWORD = "x"

ADD_URL = "/django-admin/surveys/surveyinvitation/add/"


@pytest.fixture
def superuser(db):
    return User.objects.create_superuser(
        username="root", email="root@example.com", password=TEST_PASSWORD
    )


@pytest.fixture
def survey(db):
    return Survey.objects.create(title="Admin-made links")


def add_form(survey, **overrides):
    data = {
        "survey": survey.pk,
        "invitee_name": "",
        "email": "",
        "max_uses": "1",
        "expires_at_0": "",
        "expires_at_1": "",
        "is_active": "on",
        "created_by": "",
    }
    data.update(overrides)
    return data


@pytest.mark.django_db
class TestInvitationAdmin:
    def test_each_added_invitation_gets_its_own_token(self, client, superuser, survey):
        client.force_login(superuser)

        first = client.post(ADD_URL, add_form(survey, invitee_name="One"))
        second = client.post(ADD_URL, add_form(survey, invitee_name="Two"))

        assert first.status_code == 302
        assert second.status_code == 302
        tokens = list(SurveyInvitation.objects.values_list("token", flat=True))
        assert len(tokens) == 2
        assert all(len(t) == 32 for t in tokens)
        assert tokens[0] != tokens[1]

    def test_added_invitation_records_creator(self, client, superuser, survey):
        client.force_login(superuser)
        client.post(ADD_URL, add_form(survey))
        assert SurveyInvitation.objects.get().created_by == superuser

    def test_editing_keeps_the_token(self, client, superuser, survey):
        invitation = SurveyInvitation.objects.create(survey=survey, token="kept")
        client.force_login(superuser)
        resp = client.post(
            f"/django-admin/surveys/surveyinvitation/{invitation.pk}/change/",
            add_form(survey, invitee_name="Renamed"),
        )
        assert resp.status_code == 302
        invitation.refresh_from_db()
        assert invitation.token == "kept"
        assert invitation.invitee_name == "Renamed"
