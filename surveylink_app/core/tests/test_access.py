"""Tests for the access gate and the admin_required decorator."""

from django.contrib.auth import get_user_model
from django.contrib.auth.models import AnonymousUser
from django.http import HttpResponse
from django.test import RequestFactory
import pytest

from surveylink_app.core.access import (
    AppView,
    GateDecision,
    check_access,
    is_admin,
    reachable_views,
)
from surveylink_app.core.decorators import admin_required

User = get_user_model()
TEST_PASSWORD = "x"


@pytest.fixture
def member(db):
    return User.objects.create_user(username="member", password=TEST_PASSWORD)


@pytest.fixture
def admin(db):
    user = User.objects.create_user(username="boss", password=TEST_PASSWORD)
    user.profile.is_admin = True
    user.profile.save()
    return user


@pytest.mark.django_db
class TestAccessGate:
    def test_anonymous_reaches_respondent_views_only(self):
        anon = AnonymousUser()
        assert reachable_views(anon) == {AppView.SURVEY}
        assert check_access(anon, AppView.SURVEY) == GateDecision.ALLOW
        assert check_access(anon, AppView.RESULTS) == GateDecision.SIGN_IN_REQUIRED

    def test_signed_in_non_admin_is_locked_out(self, member):
        assert not is_admin(member)
        assert reachable_views(member) == {AppView.SURVEY}
        assert check_access(member, AppView.ADMIN) == GateDecision.LOCKED
        assert check_access(member, AppView.SURVEY) == GateDecision.ALLOW

    def test_admin_reaches_everything(self, admin):
        assert is_admin(admin)
        assert reachable_views(admin) == set(AppView)
        for view in AppView:
            assert check_access(admin, view) == GateDecision.ALLOW

    def test_superuser_counts_as_admin(self, db):
        root = User.objects.create_superuser(
            username="root", email="root@example.com", password=TEST_PASSWORD
        )
        assert is_admin(root)

    def test_none_user(self):
        assert not is_admin(None)
        assert check_access(None, AppView.RESULTS) == GateDecision.SIGN_IN_REQUIRED


@pytest.mark.django_db
class TestAdminRequired:
    @pytest.fixture
    def view(self):
        @admin_required(AppView.RESULTS)
        def results(request):
            return HttpResponse("secret")

        return results

    def _request(self, user):
        request = RequestFactory().get("/results/?survey=1")
        request.user = user
        return request

    def test_anonymous_redirected_to_login(self, view):
        resp = view(self._request(AnonymousUser()))
        assert resp.status_code == 302
        assert "/accounts/login/" in resp["Location"]
        assert "next=" in resp["Location"]

    def test_non_admin_gets_locked_page(self, view, member):
        resp = view(self._request(member))
        assert resp.status_code == 403
        assert b"only available to survey administrators" in resp.content

    def test_admin_passes_through(self, view, admin):
        resp = view(self._request(admin))
        assert resp.status_code == 200
        assert resp.content == b"secret"
