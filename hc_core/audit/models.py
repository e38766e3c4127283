# hc_core/audit/models.py
from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import models


class AuditEvent(models.Model):
    """
    Immutable audit record for entities whose rows hold only current state
    (patients, requester links, documents).
    """
    event_code = models.CharField(max_length=128, db_index=True)  # e.g. "document.submitted"
    entity_type = models.CharField(max_length=128, db_index=True)  # e.g. "PatientDocument"
    entity_id = models.BigIntegerField(db_index=True)

    actor_user = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="audit_events",
        null=True,
        blank=True,
    )

    occurred_at = models.DateTimeField(auto_now_add=True, db_index=True)
    metadata = models.JSONField(default=dict)

    class Meta:
        db_table = "audit_audit_event"
        indexes = [
            models.Index(fields=["entity_type", "entity_id"], name="ix_audit_entity"),
            models.Index(fields=["event_code", "occurred_at"], name="ix_audit_code_time"),
        ]

    def save(self, *args, **kwargs):
        if not self._state.adding:
            raise ValidationError("AuditEvent is immutable and cannot be modified once created.")
        return super().save(*args, **kwargs)

    def delete(self, *args, **kwargs):
        raise ValidationError("AuditEvent is immutable and cannot be deleted.")
