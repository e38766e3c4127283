# hc_core/conftest.py
import pytest
from django.contrib.auth import get_user_model
from django.contrib.auth.models import Group
from rest_framework.test import APIClient

from hc_core.catalog.services import ensure_default_service_item
from hc_core.iam.identity import Role, actor_for_user
from hc_core.iam.models import UserProfile
from hc_core.patients.models import Patient, VerificationStatus
from hc_core.patients.services import PatientFragment


@pytest.fixture
def roles(db):
    for role in Role:
        Group.objects.get_or_create(name=role.value)


@pytest.fixture
def make_user(db, roles):
    """
    make_user("nurse1", Role.CARE_GIVER, phone="09120000009")
    A user without roles resolves to USER.
    """
    User = get_user_model()

    def _make(username, *user_roles, phone=None):
        user = User.objects.create_user(username=username, password="pass12345", is_active=True)
        for role in user_roles:
            user.groups.add(Group.objects.get(name=role.value))
        if phone:
            UserProfile.objects.create(user=user, phone=phone)
        return user

    return _make


@pytest.fixture
def admin_user(make_user):
    return make_user("admin1", Role.ADMIN)


@pytest.fixture
def expert_user(make_user):
    return make_user("expert1", Role.EXPERT)


@pytest.fixture
def support_user(make_user):
    return make_user("support1", Role.SUPPORT)


@pytest.fixture
def caregiver_user(make_user):
    return make_user("caregiver1", Role.CARE_GIVER, phone="09120000090")


@pytest.fixture
def customer_user(make_user):
    return make_user("customer1", phone="09120000001")


@pytest.fixture
def other_customer(make_user):
    return make_user("customer2", phone="09120000002")


@pytest.fixture
def actor():
    """actor(user) -> Actor, as the API would resolve it."""
    return actor_for_user


@pytest.fixture
def client_for():
    def _client(user=None):
        c = APIClient()
        if user is not None:
            c.force_authenticate(user=user)
        return c

    return _client


@pytest.fixture
def anon_client():
    return APIClient()


@pytest.fixture
def service_item(db):
    return ensure_default_service_item()


@pytest.fixture
def verified_patient(db):
    return Patient.objects.create(
        national_code="0012345678",
        first_name="Sara",
        last_name="Ahmadi",
        full_name="Sara Ahmadi",
        age=71,
        verification_status=VerificationStatus.VERIFIED,
    )


@pytest.fixture
def create_request(db, service_item):
    """
    create_request(customer_user) -> ServiceRequest through the intake path
    (the first call for a patient makes the caller its primary requester).
    """
    from hc_core.service_requests.services import RequestService

    def _create(user=None, *, phone=None, patient_id=None, national_code=None, **fields):
        fragment = PatientFragment(national_code=national_code, first_name="Reza") if national_code else None
        return RequestService.create_request(
            actor=actor_for_user(user) if user is not None else None,
            requester_phone=phone,
            patient_id=patient_id,
            patient_fragment=fragment,
            service_item_id=service_item.id,
            city=fields.get("city", "Shiraz"),
            time=fields.get("time", "morning"),
            notes=fields.get("notes", ""),
        )

    return _create


@pytest.fixture
def service_request(create_request, customer_user):
    return create_request(customer_user, national_code="0011223344")
