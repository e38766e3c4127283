# hc_core/service_requests/tests/test_intake.py
import pytest

from hc_core.catalog.models import ServiceItem
from hc_core.common.api.exceptions import ValidationFailure
from hc_core.patients.models import Patient, RequesterLink, VerificationStatus
from hc_core.service_requests.models import RequestAction, RequestStatus, ServiceRequest
from hc_core.service_requests.services import RequestService

pytestmark = pytest.mark.django_db


def test_guest_intake_without_patient_creates_placeholder_patient(service_item):
    sr = RequestService.create_request(
        actor=None,
        requester_phone="09120000005",
        service_item_id=service_item.id,
        city="Karaj",
    )

    patient = sr.patient
    assert patient.national_code.startswith("TEMP-0005-")
    assert patient.is_placeholder_code is True
    assert patient.verification_status == VerificationStatus.PENDING
    assert sr.status == RequestStatus.DOCS_PENDING

    link = sr.requester
    assert link.phone == "09120000005"
    assert link.user_id is None
    assert link.is_primary is True
    assert link.history_access_granted is True

    log = sr.logs.get()
    assert log.action == RequestAction.REQUEST_CREATED
    assert log.actor_requester_id == link.id
    assert log.actor_user_id is None


def test_verified_patient_starts_new(create_request, customer_user, verified_patient):
    sr = create_request(customer_user, patient_id=verified_patient.id)
    assert sr.status == RequestStatus.NEW
    assert sr.patient_id == verified_patient.id


def test_registered_caller_phone_comes_from_profile(create_request, customer_user):
    sr = create_request(customer_user, national_code="0099887766")
    assert sr.requester.phone == "09120000001"
    assert sr.requester.user_id == customer_user.id
    assert sr.last_action_by_id == customer_user.id


def test_same_national_code_reuses_patient_and_second_link_is_not_primary(create_request, customer_user, other_customer):
    first = create_request(customer_user, national_code="0011112222")
    second = create_request(other_customer, national_code="0011112222")

    assert first.patient_id == second.patient_id
    assert Patient.objects.filter(national_code="0011112222").count() == 1

    links = RequesterLink.objects.filter(patient_id=first.patient_id).order_by("id")
    assert [l.is_primary for l in links] == [True, False]
    assert [l.history_access_granted for l in links] == [True, False]


def test_repeat_requests_bump_link_counters(create_request, customer_user):
    create_request(customer_user, national_code="0033334444")
    sr = create_request(customer_user, national_code="0033334444")

    link = RequesterLink.objects.get(id=sr.requester_id)
    assert link.total_requests == 2
    assert link.last_request_at is not None


def test_unknown_service_item_falls_back_to_default(service_item):
    sr = RequestService.create_request(
        actor=None,
        requester_phone="09120000006",
        service_item_id=999999,
    )
    assert sr.service_item_id == service_item.id
    assert ServiceItem.objects.count() == 1


def test_missing_phone_is_rejected_before_any_write(db):
    with pytest.raises(ValidationFailure):
        RequestService.create_request(actor=None, requester_phone=None)

    assert Patient.objects.count() == 0
    assert ServiceRequest.objects.count() == 0


@pytest.mark.parametrize("phone", ["0912", "9120000005", "09x20000005"])
def test_malformed_phone_is_rejected(db, phone):
    with pytest.raises(ValidationFailure):
        RequestService.create_request(actor=None, requester_phone=phone)
    assert Patient.objects.count() == 0


def test_malformed_national_code_is_rejected(create_request, customer_user):
    with pytest.raises(ValidationFailure):
        create_request(customer_user, national_code="12AB")
    assert Patient.objects.count() == 0
