# hc_core/patients/tests/test_identity_resolution.py
import re

import pytest
from django.db.models.query import QuerySet

from hc_core.patients.models import Patient, RequesterLink, VerificationStatus
from hc_core.patients.services import (
    PatientFragment,
    find_or_create_by_national_code,
    generate_placeholder_code,
    resolve_patient,
    resolve_requester_link,
)

pytestmark = pytest.mark.django_db


def test_placeholder_code_format():
    code = generate_placeholder_code("09121234567")
    assert re.fullmatch(r"TEMP-4567-\d{6}-\d{5}", code)

    assert generate_placeholder_code(None).startswith("TEMP-0000-")


def test_patient_id_is_used_verbatim(verified_patient):
    patient = resolve_patient(
        patient_id=verified_patient.id,
        fragment=PatientFragment(national_code="0099999999", first_name="Ignored"),
        requester_phone="09120000003",
    )
    assert patient.id == verified_patient.id
    assert not Patient.objects.filter(national_code="0099999999").exists()


def test_unknown_patient_id_falls_through_to_national_code():
    patient = resolve_patient(
        patient_id=123456,
        fragment=PatientFragment(national_code="0055555555"),
        requester_phone="09120000003",
    )
    assert patient.national_code == "0055555555"
    assert patient.is_placeholder_code is False
    assert patient.verification_status == VerificationStatus.PENDING


def test_existing_national_code_ignores_fragment(verified_patient):
    patient, created = find_or_create_by_national_code(
        verified_patient.national_code,
        PatientFragment(first_name="Someone", last_name="Else"),
    )
    assert created is False
    assert patient.id == verified_patient.id
    assert patient.first_name == "Sara"


def test_concurrent_insert_of_same_code_collapses_to_one_row(monkeypatch):
    """
    Simulate the race: our lookup misses, another writer inserts the code,
    then our insert hits the unique constraint and we return their row.
    """
    winner = Patient.objects.create(national_code="0077777777", first_name="Winner")

    real_first = QuerySet.first
    state = {"missed": False}

    def first_missing_once(self):
        if self.model is Patient and not state["missed"]:
            state["missed"] = True
            return None
        return real_first(self)

    monkeypatch.setattr(QuerySet, "first", first_missing_once)

    patient, created = find_or_create_by_national_code("0077777777", PatientFragment(first_name="Loser"))

    assert created is False
    assert patient.id == winner.id
    assert Patient.objects.filter(national_code="0077777777").count() == 1


def test_first_link_is_primary_and_later_links_are_not(verified_patient):
    first = resolve_requester_link(patient=verified_patient, phone="09120000011")
    second = resolve_requester_link(patient=verified_patient, phone="09120000012")

    assert (first.is_primary, first.history_access_granted) == (True, True)
    assert (second.is_primary, second.history_access_granted) == (False, False)
    assert RequesterLink.objects.filter(patient=verified_patient, is_primary=True).count() == 1


def test_link_lookup_by_phone_backfills_user(verified_patient, customer_user):
    guest_link = resolve_requester_link(patient=verified_patient, phone="09120000001")
    assert guest_link.user_id is None

    link = resolve_requester_link(patient=verified_patient, phone="09120000001", user_id=customer_user.id)

    assert link.id == guest_link.id
    assert link.user_id == customer_user.id
    assert RequesterLink.objects.filter(patient=verified_patient).count() == 1


def test_link_lookup_prefers_user(verified_patient, customer_user):
    link = resolve_requester_link(patient=verified_patient, phone="09120000001", user_id=customer_user.id)
    again = resolve_requester_link(patient=verified_patient, phone="09129999999", user_id=customer_user.id)
    assert again.id == link.id
