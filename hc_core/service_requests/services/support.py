# hc_core/service_requests/services/support.py
from __future__ import annotations

import json
import logging
from typing import Any, Optional

from django.db import transaction
from django.utils.timezone import now

from hc_core.common.api.exceptions import EntityNotFound, InvalidPrecondition, ValidationFailure
from hc_core.common.permissions import Operation, Resource, authorize, missing
from hc_core.iam.identity import Actor
from hc_core.service_requests.models import (
    RequestAction,
    RequestLogEntry,
    RequestStatus,
    ServiceRequest,
    SupportType,
)
from hc_core.service_requests.services.lifecycle import append_log, lock_request, require_service_item
from hc_core.service_requests.services.patch import TEXT_REQUEST_FIELDS, ChangeSet, to_payload

logger = logging.getLogger(__name__)


def _validated_changes(changes: Optional[ChangeSet]) -> dict[str, Any]:
    values = changes.supplied() if changes is not None else {}
    for name, value in list(values.items()):
        if name in TEXT_REQUEST_FIELDS:
            values[name] = "" if value is None else str(value)
        elif name == "service_item_id":
            values[name] = require_service_item(value)
    return values


def _status_from_log(sr: ServiceRequest) -> Optional[str]:
    entry = (
        RequestLogEntry.objects.filter(request=sr, action=RequestAction.CANCEL_REQUESTED)
        .order_by("-created_at", "-id")
        .first()
    )
    if entry is None or entry.payload is None:
        return None

    payload = entry.payload
    if isinstance(payload, str):
        try:
            payload = json.loads(payload)
        except ValueError:
            return None
    if not isinstance(payload, dict):
        return None

    value = payload.get("previousStatus")
    return value if value in RequestStatus.values else None


class SupportService:
    """
    Escalation lane. support_type moves independently of status:

      escalate_cancel  any lane     -> CANCEL  (status -> CANCEL_REQUESTED)
      escalate_change  null         -> CHANGE  (status untouched)
      resolve_cancel   CANCEL       -> null    (CANCELED | previous status)
      resolve_change   CHANGE       -> null    (approved fields applied)

    Resolutions re-check the lane in the UPDATE itself, so a second resolver
    racing the first gets InvalidPrecondition instead of applying twice.
    """

    @staticmethod
    def _requester_target(*, actor: Optional[Actor], request_id: int) -> ServiceRequest:
        sr = lock_request(request_id)
        if sr is None:
            raise missing(actor, Resource.REQUEST, "Request not found.")
        authorize(actor, Resource.REQUEST, Operation.ESCALATE, sr)
        return sr

    @staticmethod
    def _desk_target(*, actor: Optional[Actor], request_id: int) -> ServiceRequest:
        authorize(actor, Resource.REQUEST, Operation.RESOLVE_ESCALATION)
        sr = lock_request(request_id)
        if sr is None:
            raise EntityNotFound("Request not found.")
        return sr

    @staticmethod
    def _apply_if_in_lane(sr: ServiceRequest, expected: str, reason: str, **values) -> None:
        updated = ServiceRequest.objects.filter(pk=sr.pk, support_type=expected).update(
            updated_at=now(),
            **values,
        )
        if updated == 0:
            raise InvalidPrecondition(reason, f"Request is not in the {expected} queue.")
        sr.refresh_from_db()

    # -------------------------
    # Requester side
    # -------------------------
    @staticmethod
    @transaction.atomic
    def escalate_cancel(*, request_id: int, actor: Optional[Actor]) -> ServiceRequest:
        sr = SupportService._requester_target(actor=actor, request_id=request_id)

        # a repeated escalation keeps the status captured by the first one
        if sr.status == RequestStatus.CANCEL_REQUESTED and sr.previous_status:
            previous = sr.previous_status
        else:
            previous = sr.status

        sr.previous_status = previous
        sr.status = RequestStatus.CANCEL_REQUESTED
        sr.support_type = SupportType.CANCEL
        sr.last_action_by_id = actor.user_id
        sr.save(update_fields=["previous_status", "status", "support_type", "last_action_by", "updated_at"])

        append_log(
            sr,
            RequestAction.CANCEL_REQUESTED,
            actor_user_id=actor.user_id,
            payload={"previousStatus": previous},
        )
        logger.info(
            "Cancellation requested request_id=%s previous_status=%s actor_user_id=%s",
            sr.id,
            previous,
            actor.user_id,
        )
        return sr

    @staticmethod
    @transaction.atomic
    def escalate_change(
        *,
        request_id: int,
        actor: Optional[Actor],
        changes: Optional[ChangeSet] = None,
        note: Optional[str] = None,
    ) -> ServiceRequest:
        """
        Queue a change for the support desk. The requested values are only
        recorded in the log payload; nothing on the request changes but the lane.
        """
        sr = SupportService._requester_target(actor=actor, request_id=request_id)

        requested = _validated_changes(changes)
        note = (note or "").strip()
        if not requested and not note:
            raise ValidationFailure("Describe the change or supply at least one field.")

        if sr.support_type is not None:
            raise InvalidPrecondition(
                "already_in_support_queue",
                f"Request is already queued for {sr.support_type}.",
            )

        sr.support_type = SupportType.CHANGE
        sr.last_action_by_id = actor.user_id
        sr.save(update_fields=["support_type", "last_action_by", "updated_at"])

        append_log(
            sr,
            RequestAction.CHANGE_REQUESTED,
            actor_user_id=actor.user_id,
            payload={"note": note, "requestedChanges": to_payload(requested)},
        )
        logger.info(
            "Change requested request_id=%s fields=%s actor_user_id=%s",
            sr.id,
            sorted(requested),
            actor.user_id,
        )
        return sr

    # -------------------------
    # Support desk side
    # -------------------------
    @staticmethod
    @transaction.atomic
    def resolve_cancel(*, request_id: int, actor: Optional[Actor], approve: bool = True) -> ServiceRequest:
        sr = SupportService._desk_target(actor=actor, request_id=request_id)
        if sr.support_type != SupportType.CANCEL:
            raise InvalidPrecondition("not_in_cancel_queue", "Request is not in the cancellation queue.")

        if approve:
            next_status = RequestStatus.CANCELED
        else:
            next_status = sr.previous_status or _status_from_log(sr)
            if not next_status:
                logger.warning(
                    "No previous status recorded for request_id=%s; restoring %s",
                    sr.id,
                    RequestStatus.NEW,
                )
                next_status = RequestStatus.NEW

        SupportService._apply_if_in_lane(
            sr,
            SupportType.CANCEL,
            "not_in_cancel_queue",
            status=next_status,
            support_type=None,
            previous_status="",
            last_action_by_id=actor.user_id,
        )

        append_log(
            sr,
            RequestAction.CANCEL_APPROVED if approve else RequestAction.CANCEL_REJECTED,
            actor_user_id=actor.user_id,
            payload={"nextStatus": str(next_status)},
        )
        logger.info(
            "Cancellation %s request_id=%s next_status=%s actor_user_id=%s",
            "approved" if approve else "rejected",
            sr.id,
            next_status,
            actor.user_id,
        )
        return sr

    @staticmethod
    @transaction.atomic
    def resolve_change(
        *,
        request_id: int,
        actor: Optional[Actor],
        approve: bool = True,
        changes: Optional[ChangeSet] = None,
    ) -> ServiceRequest:
        """
        Approve applies only the fields supplied here (not the ones the
        requester asked for); reject clears the lane and touches nothing else.
        """
        sr = SupportService._desk_target(actor=actor, request_id=request_id)
        if sr.support_type != SupportType.CHANGE:
            raise InvalidPrecondition("not_in_change_queue", "Request is not in the change queue.")

        updates = _validated_changes(changes) if approve else {}

        SupportService._apply_if_in_lane(
            sr,
            SupportType.CHANGE,
            "not_in_change_queue",
            support_type=None,
            last_action_by_id=actor.user_id,
            **updates,
        )

        append_log(
            sr,
            RequestAction.CHANGE_APPROVED if approve else RequestAction.CHANGE_REJECTED,
            actor_user_id=actor.user_id,
            payload={"updates": to_payload(updates), "approve": bool(approve)},
        )
        logger.info(
            "Change %s request_id=%s fields=%s actor_user_id=%s",
            "approved" if approve else "rejected",
            sr.id,
            sorted(updates),
            actor.user_id,
        )
        return sr
