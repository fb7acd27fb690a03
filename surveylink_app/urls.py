from django.contrib import admin
from django.urls import include, path

from surveylink_app.surveys import views as survey_views

urlpatterns = [
    # Invitation links land on the site root: /?survey=<id>&invite=<token>
    path("", survey_views.survey_take, name="home"),
    path("django-admin/", admin.site.urls),
    path("accounts/", include("django.contrib.auth.urls")),
    path("", include("surveylink_app.core.urls")),
    path("", include("surveylink_app.surveys.urls")),
    path("api/", include("surveylink_app.api.urls")),
]
