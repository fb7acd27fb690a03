from django.contrib.auth import get_user_model
from django.db import models

User = get_user_model()


class UserProfile(models.Model):
    """Per-user flags consulted by the access gate.

    Every user has one profile (created automatically on signup). Only
    profiles flagged ``is_admin`` may author surveys, manage invitations and
    read results.
    """

    user = models.OneToOneField(User, on_delete=models.CASCADE, related_name="profile")
    is_admin = models.BooleanField(
        default=False,
        help_text="Grants access to survey authoring, invitations and results",
    )
    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        verbose_name = "User Profile"
        verbose_name_plural = "User Profiles"

    def __str__(self) -> str:  # pragma: no cover
        return f"{self.user.username} ({'admin' if self.is_admin else 'user'})"

    @classmethod
    def get_or_create_for_user(cls, user) -> "UserProfile":
        profile, _ = cls.objects.get_or_create(user=user)
        return profile
