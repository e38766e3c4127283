# hc_core/service_requests/selectors.py
from __future__ import annotations

from typing import Optional

from django.db.models import Q, QuerySet

from hc_core.common.permissions import Operation, Resource, authorize, missing
from hc_core.iam.identity import Actor, Role, has_role
from hc_core.patients.models import RequesterLink
from hc_core.patients.selectors import link_filter
from hc_core.service_requests.models import RequestLogEntry, ServiceRequest


def _base_queryset() -> QuerySet[ServiceRequest]:
    return ServiceRequest.objects.select_related(
        "service_item",
        "service_item__category",
        "patient",
        "requester",
    )


def _visibility_q(actor: Actor) -> Q:
    """
    Union over the actor's roles, plus what every registered caller sees:
    their own requests and the history of patients they were granted.
    """
    q = Q(requester__user_id=actor.user_id)
    if actor.phone:
        q |= Q(requester__phone=actor.phone)

    history = RequesterLink.objects.filter(link_filter(actor), history_access_granted=True).values("patient_id")
    q |= Q(patient_id__in=history)

    if has_role(actor.roles, {Role.SUPPORT.value}):
        q |= Q(support_type__isnull=False)
    if has_role(actor.roles, {Role.EXPERT.value}):
        q |= Q(support_type__isnull=True)
    if has_role(actor.roles, {Role.CARE_GIVER.value}):
        q |= Q(assigned_caregiver_id=actor.user_id)
    return q


def list_requests_for_actor(actor: Optional[Actor]) -> QuerySet[ServiceRequest]:
    authorize(actor, Resource.REQUEST, Operation.LIST)

    qs = _base_queryset()
    if not has_role(actor.roles, {Role.ADMIN.value}):
        qs = qs.filter(_visibility_q(actor))
    return qs.order_by("-updated_at", "-id")


def get_request_for_actor(actor: Optional[Actor], request_id: int) -> ServiceRequest:
    sr = _base_queryset().filter(id=request_id).first()
    if sr is None:
        raise missing(actor, Resource.REQUEST, "Request not found.")
    authorize(actor, Resource.REQUEST, Operation.VIEW, sr)
    return sr


def requests_for_patient(actor: Actor, patient_id: int) -> QuerySet[ServiceRequest]:
    """Requests of one patient that the actor may see (patient detail view)."""
    qs = _base_queryset().filter(patient_id=patient_id)
    if not has_role(actor.roles, {Role.ADMIN.value, Role.EXPERT.value, Role.SUPPORT.value}):
        qs = qs.filter(_visibility_q(actor))
    return qs.order_by("-created_at", "-id")


def request_logs(sr: ServiceRequest) -> QuerySet[RequestLogEntry]:
    return sr.logs.select_related("actor_user", "actor_requester").order_by("created_at", "id")


def latest_log(sr: ServiceRequest, action: str) -> Optional[RequestLogEntry]:
    return sr.logs.filter(action=action).order_by("-created_at", "-id").first()
