# hc_core/patients/services.py
from __future__ import annotations

import logging
import re
import secrets
import time
from dataclasses import dataclass
from typing import Optional

from django.conf import settings
from django.db import IntegrityError, transaction
from django.db.models import F
from django.utils.timezone import now

from hc_core.audit.services import AuditService
from hc_core.common.api.exceptions import EntityNotFound, Forbidden, ValidationFailure
from hc_core.common.patch import UNSET, FieldPatch
from hc_core.common.permissions import STAFF_WRITE, Operation, Resource, authorize, missing
from hc_core.iam.identity import Actor, has_role
from hc_core.patients.models import Gender, Patient, RequesterLink, VerificationStatus

logger = logging.getLogger(__name__)


# -------------------------
# Input validation
# -------------------------

def validate_phone(phone: Optional[str], *, field: str = "phone") -> str:
    value = (phone or "").strip()
    if not value:
        raise ValidationFailure({field: "This field is required."})
    if not re.match(settings.GUEST_PHONE_PATTERN, value):
        raise ValidationFailure({field: "Invalid phone number."})
    return value


def validate_national_code(code: Optional[str], *, field: str = "national_code") -> str:
    value = (code or "").strip()
    if not value:
        raise ValidationFailure({field: "This field is required."})
    if not re.match(settings.NATIONAL_CODE_PATTERN, value):
        raise ValidationFailure({field: "Invalid national code."})
    return value


@dataclass(frozen=True)
class PatientFragment:
    """Demographics supplied at intake/admission (only used when creating)."""
    national_code: Optional[str] = None
    first_name: str = ""
    last_name: str = ""
    age: Optional[int] = None
    gender: str = ""

    @property
    def full_name(self) -> str:
        return " ".join(p for p in (self.first_name, self.last_name) if p).strip()


# -------------------------
# Identity resolution
# -------------------------

def generate_placeholder_code(phone: Optional[str]) -> str:
    """
    TEMP-<last 4 phone digits|0000>-<last 6 digits of epoch ms>-<5 random digits>
    """
    digits = re.sub(r"\D", "", phone or "")
    phone_part = digits[-4:] if digits else "0000"
    timestamp = str(int(time.time() * 1000))[-6:]
    rand = f"{secrets.randbelow(100000):05d}"
    return f"TEMP-{phone_part}-{timestamp}-{rand}"


def _create_patient(*, national_code: str, fragment: PatientFragment, placeholder: bool) -> Patient:
    return Patient.objects.create(
        national_code=national_code,
        is_placeholder_code=placeholder,
        first_name=fragment.first_name or "",
        last_name=fragment.last_name or "",
        full_name=fragment.full_name,
        age=fragment.age,
        gender=fragment.gender or "",
        verification_status=VerificationStatus.PENDING,
    )


def find_or_create_by_national_code(national_code: str, fragment: PatientFragment) -> tuple[Patient, bool]:
    """
    One national code => one patient. A concurrent insert of the same code
    loses on the unique constraint and returns the winner's row.
    Fragment fields are ignored when the patient already exists.
    """
    existing = Patient.objects.filter(national_code=national_code).first()
    if existing is not None:
        return existing, False

    try:
        with transaction.atomic(savepoint=True):
            return _create_patient(national_code=national_code, fragment=fragment, placeholder=False), True
    except IntegrityError:
        return Patient.objects.get(national_code=national_code), False


@transaction.atomic
def resolve_patient(
    *,
    patient_id: Optional[int],
    fragment: Optional[PatientFragment],
    requester_phone: Optional[str],
) -> Patient:
    """
    1) patient_id given and exists -> that patient, verbatim
    2) national code given -> exact match, else create (PENDING)
    3) otherwise -> new patient with a placeholder code (PENDING)
    """
    if patient_id:
        patient = Patient.objects.filter(id=patient_id).first()
        if patient is not None:
            return patient

    fragment = fragment or PatientFragment()
    code = (fragment.national_code or "").strip()
    if code:
        patient, created = find_or_create_by_national_code(code, fragment)
        if created:
            logger.info("Created patient id=%s from national code", patient.id)
        return patient

    for _ in range(3):
        try:
            with transaction.atomic(savepoint=True):
                patient = _create_patient(
                    national_code=generate_placeholder_code(requester_phone),
                    fragment=fragment,
                    placeholder=True,
                )
        except IntegrityError:
            continue
        logger.info("Created patient id=%s with placeholder code", patient.id)
        return patient

    raise IntegrityError("Could not allocate a unique placeholder national code.")


@transaction.atomic
def resolve_requester_link(*, patient: Patient, phone: Optional[str], user_id: Optional[int] = None) -> RequesterLink:
    """
    Lookup order: (patient, user) then (patient, phone).
    Found by phone only + registered caller -> back-fill the user.
    Created -> primary + history access only when it is the patient's first link.
    """
    phone = (phone or "").strip()

    if user_id:
        link = RequesterLink.objects.filter(patient=patient, user_id=user_id).first()
        if link is not None:
            return link

    if phone:
        link = RequesterLink.objects.filter(patient=patient, phone=phone).first()
        if link is not None:
            if user_id and link.user_id is None:
                link.user_id = user_id
                link.save(update_fields=["user", "updated_at"])
                logger.info("Back-filled user_id=%s on requester link id=%s", user_id, link.id)
            return link

    # Serialize link creation per patient so "first link" is decided once.
    Patient.objects.select_for_update().filter(pk=patient.pk).first()
    is_first = not RequesterLink.objects.filter(patient=patient).exists()

    try:
        with transaction.atomic(savepoint=True):
            link = RequesterLink.objects.create(
                patient=patient,
                user_id=user_id,
                phone=phone,
                is_primary=is_first,
                is_secondary=False,
                history_access_granted=is_first,
            )
    except IntegrityError:
        if phone:
            return RequesterLink.objects.get(patient=patient, phone=phone)
        return RequesterLink.objects.get(patient=patient, user_id=user_id)

    logger.info("Created requester link id=%s patient_id=%s primary=%s", link.id, patient.id, is_first)
    return link


def record_request_on_link(link: RequesterLink) -> None:
    RequesterLink.objects.filter(pk=link.pk).update(
        total_requests=F("total_requests") + 1,
        last_request_at=now(),
        updated_at=now(),
    )


# -------------------------
# Patches
# -------------------------

@dataclass(frozen=True)
class PatientPatch(FieldPatch):
    national_code: object = UNSET
    first_name: object = UNSET
    last_name: object = UNSET
    full_name: object = UNSET
    age: object = UNSET
    gender: object = UNSET
    birth_date: object = UNSET
    medical_notes: object = UNSET
    conditions: object = UNSET
    verification_status: object = UNSET


@dataclass(frozen=True)
class RequesterLinkPatch(FieldPatch):
    is_secondary: object = UNSET
    history_access_granted: object = UNSET


class PatientService:
    """
    Patient write-model operations (explicit admission + demographic edits).
    """

    NULLABLE_FIELDS = {"age", "birth_date"}

    @staticmethod
    @transaction.atomic
    def admit(*, actor: Optional[Actor], national_code: Optional[str], fragment: PatientFragment) -> tuple[Patient, bool]:
        """
        Explicit admission: national code required; find-or-create the
        patient and link the registered caller to it.
        """
        authorize(actor, Resource.PATIENT, Operation.CREATE)
        code = validate_national_code(national_code)

        patient, created = find_or_create_by_national_code(code, fragment)
        link = resolve_requester_link(patient=patient, phone=actor.phone, user_id=actor.user_id)

        AuditService.log(
            event_code="patient.admitted",
            entity=patient,
            actor_user_id=actor.user_id,
            metadata={"created": created, "requester_link_id": link.id},
        )
        logger.info("Patient admitted id=%s created=%s actor_user_id=%s", patient.id, created, actor.user_id)
        return patient, created

    @staticmethod
    @transaction.atomic
    def update(*, actor: Optional[Actor], patient_id: int, patch: PatientPatch) -> Patient:
        patient = Patient.objects.select_for_update().filter(id=patient_id).first()
        if patient is None:
            raise missing(actor, Resource.PATIENT, "Patient not found.")

        authorize(actor, Resource.PATIENT, Operation.UPDATE, patient)

        updates = patch.supplied()
        if not updates:
            raise ValidationFailure("At least one field is required.")

        if "verification_status" in updates:
            if not has_role(actor.roles, STAFF_WRITE):
                raise Forbidden("Only experts may change verification status.")
            if updates["verification_status"] not in VerificationStatus.values:
                raise ValidationFailure({"verification_status": "Invalid verification status."})

        if updates.get("gender") and updates["gender"] not in Gender.values:
            raise ValidationFailure({"gender": "Invalid gender."})

        for name in list(updates):
            if updates[name] is None and name not in PatientService.NULLABLE_FIELDS:
                updates[name] = ""

        if "national_code" in updates:
            code = validate_national_code(updates["national_code"])
            if Patient.objects.filter(national_code=code).exclude(id=patient.id).exists():
                raise ValidationFailure({"national_code": "National code already registered to another patient."})
            updates["national_code"] = code
            updates["is_placeholder_code"] = False

        if ("first_name" in updates or "last_name" in updates) and "full_name" not in updates:
            first = updates.get("first_name", patient.first_name) or ""
            last = updates.get("last_name", patient.last_name) or ""
            updates["full_name"] = f"{first} {last}".strip()

        for k, v in updates.items():
            setattr(patient, k, v)

        try:
            with transaction.atomic(savepoint=True):
                patient.save()
        except IntegrityError:
            raise ValidationFailure({"national_code": "National code already registered to another patient."})

        AuditService.log(
            event_code="patient.updated",
            entity=patient,
            actor_user_id=actor.user_id,
            metadata={"updated_fields": sorted(updates.keys())},
        )
        return patient


class RequesterLinkService:
    @staticmethod
    @transaction.atomic
    def update(*, actor: Optional[Actor], link_id: int, patch: RequesterLinkPatch) -> RequesterLink:
        """
        Staff designate secondary standing / grant history access.
        """
        authorize(actor, Resource.REQUESTER, Operation.UPDATE)

        link = RequesterLink.objects.select_for_update().filter(id=link_id).first()
        if link is None:
            raise EntityNotFound("Requester link not found.")

        updates = {k: bool(v) for k, v in patch.supplied().items()}
        if not updates:
            raise ValidationFailure("At least one field is required.")

        for k, v in updates.items():
            setattr(link, k, v)
        link.save(update_fields=[*updates.keys(), "updated_at"])

        AuditService.log(
            event_code="requester_link.updated",
            entity=link,
            actor_user_id=actor.user_id,
            metadata={"changes": updates, "patient_id": link.patient_id},
        )
        return link
