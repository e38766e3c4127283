# hc_core/documents/models.py
from django.conf import settings
from django.db import models

from hc_core.common.models import TimeStampedModel
from hc_core.patients.models import Patient, RequesterLink


class DocumentType(models.TextChoices):
    NATIONAL_CARD_FRONT = "NATIONAL_CARD_FRONT", "National card (front)"
    NATIONAL_CARD_BACK = "NATIONAL_CARD_BACK", "National card (back)"
    BIRTH_CERT_PAGE1 = "BIRTH_CERT_PAGE1", "Birth certificate (page 1)"
    MEDICAL_DOC = "MEDICAL_DOC", "Medical document"


class DocumentStatus(models.TextChoices):
    PENDING = "PENDING", "Pending"
    APPROVED = "APPROVED", "Approved"
    REJECTED = "REJECTED", "Rejected"


class PatientDocument(TimeStampedModel):
    """
    Current document for (patient, type). Re-upload replaces the row.
    """
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="documents")
    type = models.CharField(max_length=32, choices=DocumentType.choices)

    title = models.CharField(max_length=255, blank=True)
    doctor_name = models.CharField(max_length=255, blank=True)
    visit_date = models.DateField(null=True, blank=True)
    visit_reason = models.CharField(max_length=255, blank=True)
    visit_location = models.CharField(max_length=255, blank=True)
    notes = models.TextField(blank=True)

    mime_type = models.CharField(max_length=128)
    content = models.BinaryField()
    size = models.PositiveIntegerField(default=0)
    original_size = models.PositiveIntegerField(null=True, blank=True)
    is_compressed = models.BooleanField(default=False)

    status = models.CharField(
        max_length=16,
        choices=DocumentStatus.choices,
        default=DocumentStatus.PENDING,
        db_index=True,
    )

    uploaded_by_requester = models.ForeignKey(
        RequesterLink,
        on_delete=models.SET_NULL,
        related_name="uploaded_documents",
        null=True,
        blank=True,
    )
    verified_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.SET_NULL,
        related_name="verified_documents",
        null=True,
        blank=True,
    )

    class Meta:
        db_table = "documents_patient_document"
        constraints = [
            models.UniqueConstraint(fields=["patient", "type"], name="uq_document_patient_type"),
        ]

    def __str__(self) -> str:
        return f"{self.type} for patient {self.patient_id} ({self.status})"
