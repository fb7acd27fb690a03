from django.urls import path

from . import views

app_name = "surveys"

urlpatterns = [
    # Respondent flow
    path("surveys/take/", views.survey_take, name="take"),
    path("surveys/unavailable/", views.survey_unavailable, name="unavailable"),
    path("surveys/thank-you/", views.survey_thank_you, name="thank_you"),
    # Results dashboard
    path("results/", views.results_dashboard, name="results"),
    path("results/<int:survey_id>/export.csv", views.results_export, name="export"),
    path(
        "results/responses/<int:response_id>/delete/",
        views.response_delete,
        name="response_delete",
    ),
    # Survey administration (invitation routes must be before the action route)
    path("manage/", views.survey_manage, name="manage"),
    path(
        "manage/<int:survey_id>/invitations/",
        views.invitation_list,
        name="invitations",
    ),
    path(
        "manage/invitations/<int:invitation_id>/toggle/",
        views.invitation_toggle,
        name="invitation_toggle",
    ),
    path(
        "manage/invitations/<int:invitation_id>/delete/",
        views.invitation_delete,
        name="invitation_delete",
    ),
    path(
        "manage/<int:survey_id>/<slug:action>/",
        views.survey_action,
        name="survey_action",
    ),
]
