from __future__ import annotations

from django.contrib.auth import get_user_model
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import F, Q
from django.utils import timezone

User = get_user_model()


class Survey(models.Model):
    title = models.CharField(max_length=255)
    description = models.TextField(blank=True, default="")
    is_active = models.BooleanField(default=True)
    image_url = models.URLField(
        max_length=1000,
        blank=True,
        default="",
        help_text="Banner image shown above the survey form",
    )
    created_by = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="surveys",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at", "-id"]

    def __str__(self) -> str:  # pragma: no cover
        return self.title


# Optional question fields used by each type; the rest must stay null
QUESTION_TYPE_FIELDS = {
    "scale": ("scale_min", "scale_max"),
    "select": ("options", "multiple_select"),
    "text": (),
    "percentage": ("percentage_max",),
}
QUESTION_OPTIONAL_FIELDS = (
    "options",
    "scale_min",
    "scale_max",
    "multiple_select",
    "percentage_max",
)


class SurveyQuestion(models.Model):
    class Types(models.TextChoices):
        SCALE = "scale", "Scale"
        SELECT = "select", "Select"
        TEXT = "text", "Free text"
        PERCENTAGE = "percentage", "Percentage"

    survey = models.ForeignKey(
        Survey, on_delete=models.CASCADE, related_name="questions"
    )
    text = models.TextField()
    type = models.CharField(max_length=20, choices=Types.choices)
    # Only the fields relevant to ``type`` are set; the rest stay null
    options = models.JSONField(null=True, blank=True)
    scale_min = models.IntegerField(null=True, blank=True)
    scale_max = models.IntegerField(null=True, blank=True)
    multiple_select = models.BooleanField(null=True, blank=True)
    percentage_max = models.FloatField(null=True, blank=True)
    question_order = models.PositiveIntegerField(default=0)
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["question_order", "id"]

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.survey_id}:{self.question_order} {self.text[:40]}"

    def clean(self):
        errors = {}
        if self.type == self.Types.SCALE:
            if self.scale_min is None or self.scale_max is None:
                errors["scale_min"] = "Scale questions need a minimum and maximum."
            elif self.scale_min > self.scale_max:
                errors["scale_max"] = "Scale maximum must not be below the minimum."
        if self.type == self.Types.SELECT:
            if not isinstance(self.options, list) or not [
                o for o in self.options if str(o).strip()
            ]:
                errors["options"] = "Select questions need at least one option."
        if self.type == self.Types.PERCENTAGE:
            if self.percentage_max is None or self.percentage_max <= 0:
                errors["percentage_max"] = "Percentage questions need a positive maximum."

        used = QUESTION_TYPE_FIELDS.get(self.type, QUESTION_OPTIONAL_FIELDS)
        for field in QUESTION_OPTIONAL_FIELDS:
            if field not in used and getattr(self, field) is not None:
                errors[field] = f"Not used by {self.type} questions."
        if errors:
            raise ValidationError(errors)


class SurveyInvitation(models.Model):
    survey = models.ForeignKey(
        Survey, on_delete=models.CASCADE, related_name="invitations"
    )
    token = models.CharField(max_length=64, unique=True)
    invitee_name = models.CharField(max_length=255, blank=True, default="")
    email = models.EmailField(blank=True, default="")
    # Null means unlimited uses
    max_uses = models.PositiveIntegerField(null=True, blank=True, default=1)
    used_count = models.PositiveIntegerField(default=0)
    expires_at = models.DateTimeField(null=True, blank=True)
    is_active = models.BooleanField(default=True)
    created_by = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="created_invitations",
    )
    created_at = models.DateTimeField(auto_now_add=True)

    class Meta:
        ordering = ["-created_at", "-id"]
        indexes = [
            models.Index(fields=["survey", "token"], name="invitation_lookup_idx"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=Q(max_uses__isnull=True) | Q(max_uses__gte=1),
                name="invitation_max_uses_positive",
            ),
            models.CheckConstraint(
                condition=Q(max_uses__isnull=True) | Q(used_count__lte=F("max_uses")),
                name="invitation_used_count_within_limit",
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Invitation {self.pk} for survey {self.survey_id}"

    @property
    def remaining_uses(self) -> int | None:
        if self.max_uses is None:
            return None
        return max(self.max_uses - self.used_count, 0)


class SurveyResponse(models.Model):
    survey = models.ForeignKey(
        Survey, on_delete=models.CASCADE, related_name="responses"
    )
    invitation = models.ForeignKey(
        SurveyInvitation,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="responses",
    )
    # Anonymous respondents leave this null
    user = models.ForeignKey(
        User,
        null=True,
        blank=True,
        on_delete=models.SET_NULL,
        related_name="survey_responses",
    )
    respondent_id = models.CharField(max_length=255)
    respondent_name = models.CharField(max_length=255)
    country_code = models.CharField(max_length=32)
    role = models.CharField(max_length=64)
    # question id (as string) -> number | string | list of strings
    answers = models.JSONField(default=dict)
    timestamp = models.DateTimeField(default=timezone.now)

    class Meta:
        ordering = ["-timestamp", "-id"]
        indexes = [
            models.Index(
                fields=["survey", "country_code", "role"], name="response_filter_idx"
            ),
        ]

    def __str__(self) -> str:  # pragma: no cover
        return f"Response {self.pk} by {self.respondent_name}"
