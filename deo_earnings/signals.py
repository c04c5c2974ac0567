"""Signal handlers for deo_earnings."""
from __future__ import annotations

from django.contrib.auth import get_user_model
from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import DeoProfile

User = get_user_model()


@receiver(post_save, sender=User)
def create_deo_profile(sender, instance: User, created: bool, **kwargs) -> None:
    """Ensure every user has a profile to hold their role and bank details."""
    if created:
        DeoProfile.ensure_for_user(instance)
