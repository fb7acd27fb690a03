from django.contrib import admin

from .models import Survey, SurveyInvitation, SurveyQuestion, SurveyResponse
from .services import invitation_service


class SurveyQuestionInline(admin.TabularInline):
    model = SurveyQuestion
    extra = 0


@admin.register(Survey)
class SurveyAdmin(admin.ModelAdmin):
    list_display = ("title", "is_active", "created_by", "created_at")
    list_filter = ("is_active",)
    search_fields = ("title",)
    inlines = [SurveyQuestionInline]


@admin.register(SurveyInvitation)
class SurveyInvitationAdmin(admin.ModelAdmin):
    list_display = (
        "survey",
        "invitee_name",
        "email",
        "used_count",
        "max_uses",
        "expires_at",
        "is_active",
    )
    list_filter = ("is_active",)
    search_fields = ("invitee_name", "email", "token")
    # Usage is only changed by redemptions
    readonly_fields = ("token", "used_count", "created_at")

    def save_model(self, request, obj, form, change):
        if not obj.token:
            obj.token = invitation_service.unique_token()
        if not change and obj.created_by_id is None:
            obj.created_by = request.user
        super().save_model(request, obj, form, change)


@admin.register(SurveyResponse)
class SurveyResponseAdmin(admin.ModelAdmin):
    list_display = ("survey", "respondent_name", "country_code", "role", "timestamp")
    list_filter = ("survey", "country_code", "role")
