"""
Grant (or revoke) survey admin rights for an existing user.

Usage:
    python manage.py make_admin admin@example.com
    python manage.py make_admin admin@example.com --revoke
"""

from django.contrib.auth import get_user_model
from django.core.management.base import BaseCommand, CommandError

from surveylink_app.core.models import UserProfile

User = get_user_model()


class Command(BaseCommand):
    help = "Flag a user (looked up by email or username) as a survey admin"

    def add_arguments(self, parser):
        parser.add_argument("identifier", help="Email address or username")
        parser.add_argument(
            "--revoke",
            action="store_true",
            help="Remove the admin flag instead of granting it",
        )

    def handle(self, *args, **options):
        identifier = options["identifier"]
        user = (
            User.objects.filter(email__iexact=identifier).first()
            or User.objects.filter(username=identifier).first()
        )
        if user is None:
            raise CommandError(f"User not found with email or username: {identifier}")

        profile = UserProfile.get_or_create_for_user(user)
        profile.is_admin = not options["revoke"]
        profile.save(update_fields=["is_admin", "updated_at"])

        if profile.is_admin:
            self.stdout.write(self.style.SUCCESS(f"User {identifier} is now an admin"))
        else:
            self.stdout.write(
                self.style.WARNING(f"User {identifier} is no longer an admin")
            )
