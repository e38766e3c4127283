# hc_core/patients/selectors.py
from __future__ import annotations

from typing import Optional

from django.db.models import Q, QuerySet

from hc_core.common.api.exceptions import EntityNotFound, ValidationFailure
from hc_core.common.permissions import Operation, Resource, authorize, has_broad_access, missing
from hc_core.iam.identity import Actor
from hc_core.patients.models import Patient, RequesterLink


def link_filter(actor: Actor, prefix: str = "") -> Q:
    q = Q(**{f"{prefix}user_id": actor.user_id})
    if actor.phone:
        q |= Q(**{f"{prefix}phone": actor.phone})
    return q


def list_patients_for_actor(actor: Optional[Actor]) -> QuerySet[Patient]:
    """
    Staff: every patient. Everyone else: patients they hold a link to
    (by user id or by phone).
    """
    authorize(actor, Resource.PATIENT, Operation.LIST)

    if has_broad_access(actor, Resource.PATIENT):
        return Patient.objects.all().order_by("-updated_at")

    ids = RequesterLink.objects.filter(link_filter(actor)).values("patient_id")
    return Patient.objects.filter(id__in=ids).order_by("-updated_at")


def get_patient_for_actor(actor: Optional[Actor], patient_id: int) -> Patient:
    patient = Patient.objects.filter(id=patient_id).first()
    if patient is None:
        raise missing(actor, Resource.PATIENT, "Patient not found.")
    authorize(actor, Resource.PATIENT, Operation.VIEW, patient)
    return patient


def find_by_national_code(actor: Optional[Actor], national_code: Optional[str]) -> Optional[Patient]:
    authorize(actor, Resource.PATIENT, Operation.SEARCH)
    code = (national_code or "").strip()
    if not code:
        raise ValidationFailure({"national_code": "This field is required."})
    return Patient.objects.filter(national_code=code).first()


def get_requester_link(actor: Optional[Actor], link_id: int) -> RequesterLink:
    authorize(actor, Resource.REQUESTER, Operation.VIEW)
    link = RequesterLink.objects.select_related("patient", "user").filter(id=link_id).first()
    if link is None:
        raise EntityNotFound("Requester link not found.")
    return link


def links_for_actor(actor: Actor, patient_id: int) -> QuerySet[RequesterLink]:
    return RequesterLink.objects.filter(patient_id=patient_id).filter(link_filter(actor))
