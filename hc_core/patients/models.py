# hc_core/patients/models.py
from django.conf import settings
from django.db import models
from django.db.models import Q

from hc_core.common.models import TimeStampedModel


class VerificationStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    VERIFIED = "VERIFIED", "Verified"
    REJECTED = "REJECTED", "Rejected"


class Gender(models.TextChoices):
    MALE = "MALE", "Male"
    FEMALE = "FEMALE", "Female"
    OTHER = "OTHER", "Other"


class Patient(TimeStampedModel):
    """
    One physical person. Never deleted.

    national_code is unique: either the real code or a generated
    TEMP-... placeholder (is_placeholder_code=True) when intake had none.
    """
    national_code = models.CharField(max_length=64, unique=True)
    is_placeholder_code = models.BooleanField(default=False)

    first_name = models.CharField(max_length=128, blank=True)
    last_name = models.CharField(max_length=128, blank=True)
    full_name = models.CharField(max_length=255, blank=True)

    age = models.PositiveSmallIntegerField(null=True, blank=True)
    gender = models.CharField(max_length=16, choices=Gender.choices, blank=True)
    birth_date = models.DateField(null=True, blank=True)

    medical_notes = models.TextField(blank=True)
    conditions = models.TextField(blank=True)

    verification_status = models.CharField(
        max_length=16,
        choices=VerificationStatus.choices,
        default=VerificationStatus.PENDING,
        db_index=True,
    )

    class Meta:
        db_table = "patients_patient"
        indexes = [
            models.Index(fields=["last_name", "first_name"], name="ix_patient_name"),
        ]

    def __str__(self) -> str:
        return f"{self.full_name or '-'} ({self.national_code})"


class RequesterLink(TimeStampedModel):
    """
    Patient <-> contact channel (phone, optionally bound to a registered user).

    First link for a patient is primary + history-granted; later links start
    with neither flag. Never deleted.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="requester_links")
    user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="requester_links",
        null=True,
        blank=True,
    )
    phone = models.CharField(max_length=32, blank=True, db_index=True)

    is_primary = models.BooleanField(default=False)
    is_secondary = models.BooleanField(default=False)
    history_access_granted = models.BooleanField(default=False)

    total_requests = models.PositiveIntegerField(default=0)
    last_request_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "patients_requester_link"
        constraints = [
            models.UniqueConstraint(
                fields=["patient", "phone"],
                condition=~Q(phone=""),
                name="uq_requester_link_patient_phone",
            ),
            models.UniqueConstraint(
                fields=["patient", "user"],
                condition=Q(user__isnull=False),
                name="uq_requester_link_patient_user",
            ),
        ]

    @property
    def is_elevated(self) -> bool:
        return self.is_primary or self.is_secondary

    def __str__(self) -> str:
        return f"{self.phone or self.user_id} -> patient {self.patient_id}"
