from django.apps import AppConfig


class CoreConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "surveylink_app.core"
    verbose_name = "Core"

    def ready(self):
        from . import signals  # noqa: F401
