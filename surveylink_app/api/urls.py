from django.urls import include, path
from rest_framework.routers import DefaultRouter
from rest_framework_simplejwt.views import TokenObtainPairView, TokenRefreshView

from . import views

router = DefaultRouter()
router.register(r"surveys", views.SurveyViewSet, basename="survey")
router.register(r"invitations", views.InvitationViewSet, basename="invitation")
router.register(r"responses", views.ResponseViewSet, basename="response")

urlpatterns = [
    # Public respondent endpoints (before the router so they are not read as ids)
    path(
        "invitations/validate/",
        views.validate_invitation_view,
        name="invitation-validate",
    ),
    path("responses/submit/", views.submit_response_view, name="response-submit"),
    path("token/", TokenObtainPairView.as_view(), name="token_obtain_pair"),
    path("token/refresh/", TokenRefreshView.as_view(), name="token_refresh"),
    path("me/", views.me, name="me"),
    path("healthcheck/", views.healthcheck, name="healthcheck"),
    path("", include(router.urls)),
]
