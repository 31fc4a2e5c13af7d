"""
Profile bootstrap: every new user gets exactly one Profile row.
"""
import logging

from django.db.models.signals import post_save
from django.dispatch import receiver

from .models import User, Profile
from .utils import get_ledger_setting

logger = logging.getLogger(__name__)


def default_profile_name(user):
    """Name used when registration did not supply one"""
    return user.get_full_name().strip() or get_ledger_setting('DEFAULT_PROFILE_NAME')


@receiver(post_save, sender=User)
def create_user_profile(sender, instance, created, raw=False, **kwargs):
    if not created or raw:
        return
    profile, was_created = Profile.objects.get_or_create(
        user=instance,
        defaults={'full_name': default_profile_name(instance)},
    )
    if was_created:
        logger.info("Created profile for user %s", instance.pk)
