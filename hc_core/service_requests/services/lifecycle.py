# hc_core/service_requests/services/lifecycle.py
from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime
from typing import Any, Optional

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db import transaction
from django.utils.timezone import now

from hc_core.catalog.models import ServiceItem
from hc_core.catalog.services import resolve_service_item
from hc_core.common.api.exceptions import (
    EntityNotFound,
    InvalidPrecondition,
    ValidationFailure,
)
from hc_core.common.permissions import Operation, Resource, authorize, missing
from hc_core.iam.identity import Actor, Role
from hc_core.patients.models import Patient, VerificationStatus
from hc_core.patients.services import (
    PatientFragment,
    record_request_on_link,
    resolve_patient,
    resolve_requester_link,
    validate_national_code,
    validate_phone,
)
from hc_core.service_requests.models import (
    RequestAction,
    RequestLogEntry,
    RequestStatus,
    ServiceRequest,
    SupportType,
)
from hc_core.service_requests.services.patch import (
    NULLABLE_REQUEST_FIELDS,
    TEXT_REQUEST_FIELDS,
    RequestPatch,
    to_payload,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UploadCapability:
    token: str
    expires_at: datetime
    patient_id: int


# -------------------------
# Shared helpers (also used by the support lane)
# -------------------------

def append_log(
    request: ServiceRequest,
    action: str,
    *,
    actor_user_id: Optional[int] = None,
    actor_requester_id: Optional[int] = None,
    payload: Optional[dict[str, Any]] = None,
) -> RequestLogEntry:
    return RequestLogEntry.objects.create(
        request=request,
        action=action,
        actor_user_id=actor_user_id,
        actor_requester_id=actor_requester_id,
        payload=payload,
    )


def lock_request(request_id: int) -> Optional[ServiceRequest]:
    return ServiceRequest.objects.select_for_update().filter(id=request_id).first()


def require_service_item(service_item_id: Any, *, field: str = "service_item_id") -> int:
    if service_item_id is None or not ServiceItem.objects.filter(id=service_item_id).exists():
        raise ValidationFailure({field: "Unknown service item."})
    return int(service_item_id)


def require_user(user_id: Any, *, field: str, role: Optional[Role] = None) -> int:
    User = get_user_model()
    qs = User.objects.filter(id=user_id, is_active=True)
    if role is not None:
        qs = qs.filter(groups__name=role.value)
    if user_id is None or not qs.exists():
        if role is not None:
            raise ValidationFailure({field: f"User is not an active {role.value}."})
        raise ValidationFailure({field: "Unknown user."})
    return int(user_id)


class RequestService:
    """
    Request lifecycle write-model.

    Every method is one atomic unit: row update + RequestLogEntry.

      (create)      -> NEW (patient VERIFIED) | DOCS_PENDING
      assign        -> ASSIGNED                       (EXPERT/ADMIN)
      ASSIGNED      -> REJECTED_BY_CAREGIVER          (assigned caregiver)
      non-terminal  -> CLOSED                         (EXPERT/ADMIN)
      non-terminal  -> any status via update_request  (EXPERT/ADMIN)
    """

    @staticmethod
    def _staff_target(*, actor: Optional[Actor], request_id: int, operation: Operation) -> ServiceRequest:
        # role-only grant: authorize before the lookup
        authorize(actor, Resource.REQUEST, operation)
        sr = lock_request(request_id)
        if sr is None:
            raise EntityNotFound("Request not found.")
        return sr

    @staticmethod
    def _require_open(sr: ServiceRequest) -> None:
        if sr.is_terminal:
            raise InvalidPrecondition("request_closed", f"Request is {sr.status}.")

    # -------------------------
    # Intake
    # -------------------------
    @staticmethod
    @transaction.atomic
    def create_request(
        *,
        actor: Optional[Actor],
        requester_phone: Optional[str] = None,
        patient_id: Optional[int] = None,
        patient_fragment: Optional[PatientFragment] = None,
        service_item_id: Optional[int] = None,
        city: str = "",
        time: str = "",
        notes: str = "",
    ) -> ServiceRequest:
        if requester_phone:
            phone = validate_phone(requester_phone)
        elif actor is not None and actor.phone:
            phone = actor.phone
        else:
            raise ValidationFailure({"phone": "This field is required."})

        if patient_fragment is not None and (patient_fragment.national_code or "").strip():
            validate_national_code(patient_fragment.national_code, field="patient.national_code")

        actor = actor or Actor(phone=phone)
        authorize(actor, Resource.REQUEST, Operation.CREATE)

        patient = resolve_patient(patient_id=patient_id, fragment=patient_fragment, requester_phone=phone)
        link = resolve_requester_link(patient=patient, phone=phone, user_id=actor.user_id)
        record_request_on_link(link)
        item = resolve_service_item(service_item_id)

        status = (
            RequestStatus.NEW
            if patient.verification_status == VerificationStatus.VERIFIED
            else RequestStatus.DOCS_PENDING
        )

        sr = ServiceRequest.objects.create(
            patient=patient,
            requester=link,
            service_item=item,
            status=status,
            city=city or "",
            time=time or "",
            notes=notes or "",
            last_action_by_id=actor.user_id,
        )
        append_log(sr, RequestAction.REQUEST_CREATED, actor_requester_id=link.id)

        logger.info(
            "Request created id=%s patient_id=%s status=%s requester_link_id=%s actor_user_id=%s",
            sr.id,
            patient.id,
            status,
            link.id,
            actor.user_id,
        )
        return sr

    # -------------------------
    # Staff edits
    # -------------------------
    @staticmethod
    @transaction.atomic
    def update_request(*, request_id: int, actor: Optional[Actor], patch: RequestPatch) -> ServiceRequest:
        sr = RequestService._staff_target(actor=actor, request_id=request_id, operation=Operation.UPDATE)

        updates = patch.supplied()
        if not updates:
            raise ValidationFailure("At least one field is required.")

        for name, value in list(updates.items()):
            if value is None and name in TEXT_REQUEST_FIELDS:
                updates[name] = ""
            elif value is None and name not in NULLABLE_REQUEST_FIELDS:
                raise ValidationFailure({name: "This field may not be null."})

        if "status" in updates:
            if updates["status"] not in RequestStatus.values:
                raise ValidationFailure({"status": "Invalid status."})
            if updates["status"] != sr.status:
                RequestService._require_open(sr)
        if updates.get("support_type") is not None and updates["support_type"] not in SupportType.values:
            raise ValidationFailure({"support_type": "Invalid support type."})
        if "service_item_id" in updates:
            require_service_item(updates["service_item_id"])
        if "patient_id" in updates and not Patient.objects.filter(id=updates["patient_id"]).exists():
            raise ValidationFailure({"patient_id": "Unknown patient."})
        if updates.get("assigned_caregiver_id") is not None:
            require_user(updates["assigned_caregiver_id"], field="assigned_caregiver_id", role=Role.CARE_GIVER)
        if updates.get("assigned_expert_id") is not None:
            require_user(updates["assigned_expert_id"], field="assigned_expert_id")
        if updates.get("current_owner_id") is not None:
            require_user(updates["current_owner_id"], field="current_owner_id")

        status_from = sr.status
        changed = {k: v for k, v in updates.items() if getattr(sr, k) != v}

        for k, v in updates.items():
            setattr(sr, k, v)
        sr.last_action_by_id = actor.user_id
        sr.save()

        payload: dict[str, Any] = {"changes": to_payload(changed)}
        if sr.status != status_from:
            payload["statusFrom"] = status_from
            payload["statusTo"] = sr.status
        append_log(sr, RequestAction.REQUEST_UPDATED, actor_user_id=actor.user_id, payload=payload)

        logger.info(
            "Request updated id=%s fields=%s status=%s->%s actor_user_id=%s",
            sr.id,
            sorted(changed),
            status_from,
            sr.status,
            actor.user_id,
        )
        return sr

    @staticmethod
    @transaction.atomic
    def assign_caregiver(*, request_id: int, actor: Optional[Actor], caregiver_id: Any) -> ServiceRequest:
        sr = RequestService._staff_target(actor=actor, request_id=request_id, operation=Operation.ASSIGN)
        caregiver_id = require_user(caregiver_id, field="caregiver_id", role=Role.CARE_GIVER)
        RequestService._require_open(sr)

        status_from = sr.status
        sr.status = RequestStatus.ASSIGNED
        sr.assigned_caregiver_id = caregiver_id
        sr.assigned_expert_id = actor.user_id
        sr.last_action_by_id = actor.user_id
        sr.save(update_fields=["status", "assigned_caregiver", "assigned_expert", "last_action_by", "updated_at"])

        append_log(
            sr,
            RequestAction.ASSIGNED_CAREGIVER,
            actor_user_id=actor.user_id,
            payload={"caregiverId": caregiver_id},
        )
        logger.info(
            "Request assigned id=%s caregiver_id=%s status=%s->%s actor_user_id=%s",
            sr.id,
            caregiver_id,
            status_from,
            sr.status,
            actor.user_id,
        )
        return sr

    @staticmethod
    @transaction.atomic
    def caregiver_reject(*, request_id: int, actor: Optional[Actor]) -> ServiceRequest:
        sr = lock_request(request_id)
        if sr is None:
            raise missing(actor, Resource.REQUEST, "Request not found.")
        authorize(actor, Resource.REQUEST, Operation.CAREGIVER_REJECT, sr)

        if sr.status != RequestStatus.ASSIGNED:
            raise InvalidPrecondition("not_assigned", "Only an ASSIGNED request can be rejected by its caregiver.")

        caregiver_id = sr.assigned_caregiver_id
        sr.status = RequestStatus.REJECTED_BY_CAREGIVER
        sr.assigned_caregiver = None
        sr.last_action_by_id = actor.user_id
        sr.save(update_fields=["status", "assigned_caregiver", "last_action_by", "updated_at"])

        append_log(
            sr,
            RequestAction.CARE_GIVER_REJECTED,
            actor_user_id=actor.user_id,
            payload={"caregiverId": caregiver_id},
        )
        logger.info("Request rejected by caregiver id=%s caregiver_id=%s", sr.id, caregiver_id)
        return sr

    @staticmethod
    @transaction.atomic
    def close_request(*, request_id: int, actor: Optional[Actor]) -> ServiceRequest:
        sr = RequestService._staff_target(actor=actor, request_id=request_id, operation=Operation.CLOSE)
        RequestService._require_open(sr)

        status_from = sr.status
        sr.status = RequestStatus.CLOSED
        sr.last_action_by_id = actor.user_id
        sr.save(update_fields=["status", "last_action_by", "updated_at"])

        append_log(
            sr,
            RequestAction.REQUEST_CLOSED,
            actor_user_id=actor.user_id,
            payload={"previousStatus": status_from},
        )
        logger.info("Request closed id=%s from=%s actor_user_id=%s", sr.id, status_from, actor.user_id)
        return sr

    # -------------------------
    # Document upload capability
    # -------------------------
    @staticmethod
    @transaction.atomic
    def mint_upload_token(*, request_id: int, actor: Optional[Actor]) -> UploadCapability:
        """
        Random opaque token scoped to the request's patient. Valid for any
        number of uploads until it expires; expiry is the only revocation.
        """
        sr = RequestService._staff_target(actor=actor, request_id=request_id, operation=Operation.MINT_UPLOAD_TOKEN)
        RequestService._require_open(sr)

        token = secrets.token_hex(24)
        expires_at = now() + settings.DOC_UPLOAD_TOKEN_TTL

        sr.doc_upload_token = token
        sr.doc_upload_expires_at = expires_at
        sr.last_action_by_id = actor.user_id
        sr.save(update_fields=["doc_upload_token", "doc_upload_expires_at", "last_action_by", "updated_at"])

        append_log(
            sr,
            RequestAction.DOC_LINK_CREATED,
            actor_user_id=actor.user_id,
            payload={"expiresAt": expires_at.isoformat()},
        )
        logger.info("Upload link minted request_id=%s expires_at=%s", sr.id, expires_at.isoformat())
        return UploadCapability(token=token, expires_at=expires_at, patient_id=sr.patient_id)
