"""Signal handlers for core app models."""

import logging

from django.contrib.auth import get_user_model
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import UserProfile

User = get_user_model()
logger = logging.getLogger(__name__)


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, **kwargs):
    """Create UserProfile automatically when a new user is created."""
    if created:
        UserProfile.objects.get_or_create(user=instance)
        logger.debug(f"Created profile for user {instance.username}")
