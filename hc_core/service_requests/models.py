# hc_core/service_requests/models.py
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models
from django.db.models import Q

from hc_core.catalog.models import ServiceItem
from hc_core.common.models import TimeStampedModel
from hc_core.patients.models import Patient, RequesterLink


class RequestStatus(models.TextChoices):
    NEW = "NEW", "New"
    DOCS_PENDING = "DOCS_PENDING", "Documents pending"
    ASSIGNED = "ASSIGNED", "Assigned"
    REJECTED_BY_CAREGIVER = "REJECTED_BY_CAREGIVER", "Rejected by caregiver"
    CANCEL_REQUESTED = "CANCEL_REQUESTED", "Cancellation requested"
    CANCELED = "CANCELED", "Canceled"
    CLOSED = "CLOSED", "Closed"


TERMINAL_STATUSES = frozenset({RequestStatus.CLOSED, RequestStatus.CANCELED})


class SupportType(models.TextChoices):
    CANCEL = "CANCEL", "Cancellation"
    CHANGE = "CHANGE", "Change"
    OTHER = "OTHER", "Other"


class RequestAction(models.TextChoices):
    REQUEST_CREATED = "REQUEST_CREATED", "Request created"
    REQUEST_UPDATED = "REQUEST_UPDATED", "Request updated"
    ASSIGNED_CAREGIVER = "ASSIGNED_CAREGIVER", "Caregiver assigned"
    CARE_GIVER_REJECTED = "CARE_GIVER_REJECTED", "Caregiver rejected"
    REQUEST_CLOSED = "REQUEST_CLOSED", "Request closed"
    DOC_LINK_CREATED = "DOC_LINK_CREATED", "Document upload link created"
    CANCEL_REQUESTED = "CANCEL_REQUESTED", "Cancellation requested"
    CANCEL_APPROVED = "CANCEL_APPROVED", "Cancellation approved"
    CANCEL_REJECTED = "CANCEL_REJECTED", "Cancellation rejected"
    CHANGE_REQUESTED = "CHANGE_REQUESTED", "Change requested"
    CHANGE_APPROVED = "CHANGE_APPROVED", "Change approved"
    CHANGE_REJECTED = "CHANGE_REJECTED", "Change rejected"


class ServiceRequest(TimeStampedModel):
    """
    One home-care service engagement.

    status is the primary lifecycle; support_type is the escalation lane and
    moves independently of it.
    """
    status = models.CharField(
        max_length=32,
        choices=RequestStatus.choices,
        default=RequestStatus.NEW,
        db_index=True,
    )
    # status held right before a cancellation escalation (restored on reject)
    previous_status = models.CharField(max_length=32, choices=RequestStatus.choices, blank=True)

    support_type = models.CharField(
        max_length=16,
        choices=SupportType.choices,
        null=True,
        blank=True,
        db_index=True,
    )

    service_item = models.ForeignKey(ServiceItem, on_delete=models.PROTECT, related_name="requests")
    patient = models.ForeignKey(Patient, on_delete=models.PROTECT, related_name="requests")
    requester = models.ForeignKey(RequesterLink, on_delete=models.PROTECT, related_name="requests")

    city = models.CharField(max_length=128, blank=True)
    time = models.CharField(max_length=128, blank=True)
    notes = models.TextField(blank=True)

    assigned_caregiver = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="caregiver_requests",
        null=True,
        blank=True,
    )
    assigned_expert = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="expert_requests",
        null=True,
        blank=True,
    )
    current_owner = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="owned_requests",
        null=True,
        blank=True,
    )
    last_action_by = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="+",
        null=True,
        blank=True,
    )

    doc_upload_token = models.CharField(max_length=64, null=True, blank=True, db_index=True)
    doc_upload_expires_at = models.DateTimeField(null=True, blank=True)

    class Meta:
        db_table = "service_requests_request"
        indexes = [
            models.Index(fields=["status", "updated_at"], name="ix_request_status_updated"),
            models.Index(fields=["assigned_caregiver", "status"], name="ix_request_caregiver_status"),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def __str__(self) -> str:
        return f"Request {self.pk} ({self.status})"


class RequestLogEntry(models.Model):
    """
    Append-only history of a request. Actor is a user or a requester link,
    never both.
    """
    request = models.ForeignKey(ServiceRequest, on_delete=models.PROTECT, related_name="logs")

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="request_log_entries",
        null=True,
        blank=True,
    )
    actor_requester = models.ForeignKey(
        RequesterLink,
        on_delete=models.PROTECT,
        related_name="request_log_entries",
        null=True,
        blank=True,
    )

    action = models.CharField(max_length=32, choices=RequestAction.choices, db_index=True)
    payload = models.JSONField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)

    class Meta:
        db_table = "service_requests_log_entry"
        indexes = [
            models.Index(fields=["request", "action", "created_at"], name="ix_request_log_action"),
        ]
        constraints = [
            models.CheckConstraint(
                condition=(
                    Q(actor_user__isnull=False, actor_requester__isnull=True)
                    | Q(actor_user__isnull=True, actor_requester__isnull=False)
                ),
                name="ck_request_log_single_actor",
            ),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("RequestLogEntry is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("RequestLogEntry is immutable and cannot be deleted.")

    def __str__(self) -> str:
        return f"{self.action} on request {self.request_id}"
