from io import StringIO

from django.contrib.auth import get_user_model
from django.core.management import call_command
from django.core.management.base import CommandError
import pytest

from surveylink_app.core.models import UserProfile

User = get_user_model()
TEST_PASSWORD = "x"


@pytest.mark.django_db
class TestUserProfileSignal:
    def test_profile_created_with_user(self):
        user = User.objects.create_user(username="newbie", password=TEST_PASSWORD)
        profile = UserProfile.objects.get(user=user)
        assert profile.is_admin is False

    def test_saving_again_does_not_duplicate(self):
        user = User.objects.create_user(username="again", password=TEST_PASSWORD)
        user.first_name = "Changed"
        user.save()
        assert UserProfile.objects.filter(user=user).count() == 1

    def test_get_or_create_for_user(self):
        user = User.objects.create_user(username="orphan", password=TEST_PASSWORD)
        UserProfile.objects.filter(user=user).delete()
        profile = UserProfile.get_or_create_for_user(user)
        assert profile.user == user


@pytest.mark.django_db
class TestMakeAdminCommand:
    def test_grant_by_email(self):
        user = User.objects.create_user(
            username="lead", email="lead@example.com", password=TEST_PASSWORD
        )
        out = StringIO()
        call_command("make_admin", "LEAD@example.com", stdout=out)
        assert UserProfile.objects.get(user=user).is_admin
        assert "is now an admin" in out.getvalue()

    def test_revoke_by_username(self):
        user = User.objects.create_user(username="former", password=TEST_PASSWORD)
        UserProfile.objects.filter(user=user).update(is_admin=True)
        call_command("make_admin", "former", "--revoke", stdout=StringIO())
        assert not UserProfile.objects.get(user=user).is_admin

    def test_unknown_user(self):
        with pytest.raises(CommandError):
            call_command("make_admin", "ghost@example.com", stdout=StringIO())
