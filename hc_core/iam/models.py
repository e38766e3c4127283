# hc_core/iam/models.py
from django.conf import settings
from django.db import models

from hc_core.common.models import TimeStampedModel


class UserProfile(TimeStampedModel):
    """
    Contact identity anchored to Django's AUTH_USER_MODEL.
    Roles live on auth Groups (see hc_core.iam.identity.Role).
    """
    user = models.OneToOneField(settings.AUTH_USER_MODEL, on_delete=models.CASCADE, related_name="hc_profile")
    phone = models.CharField(max_length=32, unique=True)
    national_code = models.CharField(max_length=32, blank=True)

    class Meta:
        db_table = "iam_user_profile"

    def __str__(self) -> str:
        return f"{self.user_id} ({self.phone})"
