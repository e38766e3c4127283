# hc_core/audit/selectors.py
from __future__ import annotations

from django.db.models import Q, QuerySet

from hc_core.audit.models import AuditEvent


def list_audit_events(
    *,
    entity_type: str | None = None,
    entity_id: int | None = None,
    event_code: str | None = None,
    actor_user_id: int | None = None,
    patient_id: int | None = None,
) -> QuerySet[AuditEvent]:
    """
    patient_id collects a patient's whole trail: events on the patient row
    plus events on its links and documents (which carry patient_id in metadata).
    """
    qs = AuditEvent.objects.select_related("actor_user")

    if entity_type:
        qs = qs.filter(entity_type=entity_type)
    if entity_id is not None:
        qs = qs.filter(entity_id=entity_id)
    if event_code:
        qs = qs.filter(event_code=event_code)
    if actor_user_id is not None:
        qs = qs.filter(actor_user_id=actor_user_id)
    if patient_id is not None:
        qs = qs.filter(Q(entity_type="Patient", entity_id=patient_id) | Q(metadata__patient_id=patient_id))

    return qs.order_by("-occurred_at", "-id")
