from django import forms
from django.conf import settings

from .models import Survey


class SurveyForm(forms.ModelForm):
    """Title, description and banner for a survey."""

    class Meta:
        model = Survey
        fields = ["title", "description", "image_url"]
        widgets = {
            "description": forms.Textarea(attrs={"rows": 4}),
        }
        help_texts = {
            "description": "Markdown is supported.",
        }


class InvitationForm(forms.Form):
    invitee_name = forms.CharField(required=False, max_length=255, label="Name")
    email = forms.EmailField(required=False)
    max_uses = forms.IntegerField(required=False, min_value=1, label="Maximum uses")
    unlimited = forms.BooleanField(required=False, label="Unlimited uses")
    expires_in_days = forms.IntegerField(
        required=False,
        min_value=0,
        label="Expires after (days)",
        help_text="0 for a link that never expires.",
    )

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.fields["max_uses"].initial = settings.SURVEYLINK_DEFAULT_INVITE_MAX_USES
        self.fields[
            "expires_in_days"
        ].initial = settings.SURVEYLINK_DEFAULT_INVITE_EXPIRY_DAYS
