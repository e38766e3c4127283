# hc_core/patients/tests/test_patient_service.py
import pytest

from hc_core.audit.models import AuditEvent
from hc_core.common.api.exceptions import EntityNotFound, Forbidden, Unauthenticated, ValidationFailure
from hc_core.patients.models import Patient, RequesterLink, VerificationStatus
from hc_core.patients.services import (
    PatientFragment,
    PatientPatch,
    PatientService,
    RequesterLinkPatch,
    RequesterLinkService,
)

pytestmark = pytest.mark.django_db


def test_admit_creates_patient_and_links_caller(customer_user, actor):
    patient, created = PatientService.admit(
        actor=actor(customer_user),
        national_code="0044556677",
        fragment=PatientFragment(national_code="0044556677", first_name="Mina", last_name="Rahimi"),
    )

    assert created is True
    assert patient.full_name == "Mina Rahimi"
    link = RequesterLink.objects.get(patient=patient)
    assert link.user_id == customer_user.id
    assert link.is_primary is True
    assert AuditEvent.objects.filter(event_code="patient.admitted", entity_id=patient.id).exists()


def test_admit_requires_national_code(customer_user, actor):
    with pytest.raises(ValidationFailure):
        PatientService.admit(actor=actor(customer_user), national_code="", fragment=PatientFragment())


def test_admit_requires_actor():
    with pytest.raises(Unauthenticated):
        PatientService.admit(actor=None, national_code="0044556677", fragment=PatientFragment())


def test_linked_requester_can_edit_demographics(service_request, customer_user, actor):
    patient = PatientService.update(
        actor=actor(customer_user),
        patient_id=service_request.patient_id,
        patch=PatientPatch(last_name="Moradi", age=None),
    )
    assert patient.last_name == "Moradi"
    assert patient.full_name == "Reza Moradi"
    assert patient.age is None


def test_requester_cannot_change_verification_status(service_request, customer_user, actor):
    with pytest.raises(Forbidden):
        PatientService.update(
            actor=actor(customer_user),
            patient_id=service_request.patient_id,
            patch=PatientPatch(verification_status=VerificationStatus.VERIFIED),
        )


def test_expert_verifies_patient(service_request, expert_user, actor):
    patient = PatientService.update(
        actor=actor(expert_user),
        patient_id=service_request.patient_id,
        patch=PatientPatch(verification_status=VerificationStatus.VERIFIED),
    )
    assert patient.verification_status == VerificationStatus.VERIFIED


def test_stranger_cannot_edit_and_cannot_probe(service_request, other_customer, actor):
    with pytest.raises(Forbidden):
        PatientService.update(
            actor=actor(other_customer),
            patient_id=service_request.patient_id,
            patch=PatientPatch(first_name="X"),
        )
    with pytest.raises(Forbidden):
        PatientService.update(actor=actor(other_customer), patient_id=999999, patch=PatientPatch(first_name="X"))


def test_staff_get_not_found(expert_user, actor):
    with pytest.raises(EntityNotFound):
        PatientService.update(actor=actor(expert_user), patient_id=999999, patch=PatientPatch(first_name="X"))


def test_replacing_placeholder_code(create_request, expert_user, actor):
    sr = create_request(phone="09120000005")
    assert sr.patient.is_placeholder_code

    patient = PatientService.update(
        actor=actor(expert_user),
        patient_id=sr.patient_id,
        patch=PatientPatch(national_code="0066778899"),
    )
    assert patient.national_code == "0066778899"
    assert patient.is_placeholder_code is False


def test_national_code_must_stay_unique(service_request, verified_patient, expert_user, actor):
    with pytest.raises(ValidationFailure):
        PatientService.update(
            actor=actor(expert_user),
            patient_id=service_request.patient_id,
            patch=PatientPatch(national_code=verified_patient.national_code),
        )
    assert Patient.objects.filter(national_code=verified_patient.national_code).count() == 1


def test_requester_link_update_by_staff(service_request, create_request, other_customer, expert_user, actor):
    second = create_request(other_customer, national_code="0011223344")
    link_id = second.requester_id
    assert second.requester.is_primary is False

    link = RequesterLinkService.update(
        actor=actor(expert_user),
        link_id=link_id,
        patch=RequesterLinkPatch(is_secondary=True, history_access_granted=True),
    )
    assert link.is_secondary is True
    assert link.history_access_granted is True
    assert AuditEvent.objects.filter(event_code="requester_link.updated", entity_id=link_id).exists()


def test_requester_link_update_forbidden_for_customers(service_request, customer_user, actor):
    with pytest.raises(Forbidden):
        RequesterLinkService.update(
            actor=actor(customer_user),
            link_id=service_request.requester_id,
            patch=RequesterLinkPatch(is_secondary=True),
        )
