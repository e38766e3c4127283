# hc_core/service_requests/services/patch.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from hc_core.common.patch import UNSET, FieldPatch


@dataclass(frozen=True)
class RequestPatch(FieldPatch):
    """
    Staff edit of a request. Absent slots are untouched; None clears the
    nullable ones (assignments, support lane) and blanks the text ones.
    """
    service_item_id: Any = UNSET
    patient_id: Any = UNSET
    city: Any = UNSET
    time: Any = UNSET
    notes: Any = UNSET
    status: Any = UNSET
    assigned_caregiver_id: Any = UNSET
    assigned_expert_id: Any = UNSET
    current_owner_id: Any = UNSET
    support_type: Any = UNSET


@dataclass(frozen=True)
class ChangeSet(FieldPatch):
    """Fields a requester may ask to change (applied only on support approval)."""
    service_item_id: Any = UNSET
    city: Any = UNSET
    time: Any = UNSET
    notes: Any = UNSET


NULLABLE_REQUEST_FIELDS = frozenset({
    "assigned_caregiver_id",
    "assigned_expert_id",
    "current_owner_id",
    "support_type",
})

TEXT_REQUEST_FIELDS = frozenset({"city", "time", "notes"})

# log payloads keep the camelCase keys clients read back
PAYLOAD_KEYS = {
    "service_item_id": "serviceItemId",
    "patient_id": "patientId",
    "city": "city",
    "time": "time",
    "notes": "notes",
    "status": "status",
    "assigned_caregiver_id": "assignedCaregiverId",
    "assigned_expert_id": "assignedExpertId",
    "current_owner_id": "currentOwnerUserId",
    "support_type": "supportType",
}


def to_payload(values: dict[str, Any]) -> dict[str, Any]:
    return {PAYLOAD_KEYS.get(k, k): v for k, v in values.items()}
