# hc_core/service_requests/tests/test_lifecycle.py
import json
import re
from datetime import timedelta

import pytest
from django.utils.timezone import now

from hc_core.common.api.exceptions import (
    EntityNotFound,
    Forbidden,
    InvalidPrecondition,
    Unauthenticated,
    ValidationFailure,
)
from hc_core.common.patch import UNSET
from hc_core.service_requests.models import RequestAction, RequestStatus
from hc_core.service_requests.selectors import latest_log
from hc_core.service_requests.services import RequestPatch, RequestService

pytestmark = pytest.mark.django_db


# ----------------------------
# Assignment
# ----------------------------
def test_assign_caregiver_logs_caregiver_id(service_request, expert_user, caregiver_user, actor):
    sr = RequestService.assign_caregiver(
        request_id=service_request.id,
        actor=actor(expert_user),
        caregiver_id=caregiver_user.id,
    )

    assert sr.status == RequestStatus.ASSIGNED
    assert sr.assigned_caregiver_id == caregiver_user.id
    assert sr.assigned_expert_id == expert_user.id
    assert sr.last_action_by_id == expert_user.id

    log = latest_log(sr, RequestAction.ASSIGNED_CAREGIVER)
    assert log.payload == {"caregiverId": caregiver_user.id}
    assert log.actor_user_id == expert_user.id


def test_assign_requires_caregiver_role(service_request, expert_user, support_user, actor):
    with pytest.raises(ValidationFailure):
        RequestService.assign_caregiver(
            request_id=service_request.id,
            actor=actor(expert_user),
            caregiver_id=support_user.id,
        )


def test_customer_cannot_assign(service_request, customer_user, caregiver_user, actor):
    with pytest.raises(Forbidden):
        RequestService.assign_caregiver(
            request_id=service_request.id,
            actor=actor(customer_user),
            caregiver_id=caregiver_user.id,
        )


def test_assign_without_actor_is_unauthenticated(service_request, caregiver_user):
    with pytest.raises(Unauthenticated):
        RequestService.assign_caregiver(request_id=service_request.id, actor=None, caregiver_id=caregiver_user.id)


def test_staff_get_not_found_for_missing_request(expert_user, caregiver_user, actor):
    with pytest.raises(EntityNotFound):
        RequestService.assign_caregiver(request_id=424242, actor=actor(expert_user), caregiver_id=caregiver_user.id)


# ----------------------------
# Caregiver rejection
# ----------------------------
def test_assigned_caregiver_can_reject(service_request, expert_user, caregiver_user, actor):
    RequestService.assign_caregiver(
        request_id=service_request.id,
        actor=actor(expert_user),
        caregiver_id=caregiver_user.id,
    )

    sr = RequestService.caregiver_reject(request_id=service_request.id, actor=actor(caregiver_user))

    assert sr.status == RequestStatus.REJECTED_BY_CAREGIVER
    assert sr.assigned_caregiver_id is None
    assert latest_log(sr, RequestAction.CARE_GIVER_REJECTED).payload == {"caregiverId": caregiver_user.id}


def test_other_caregiver_cannot_reject(service_request, expert_user, caregiver_user, make_user, actor):
    from hc_core.iam.identity import Role

    other = make_user("caregiver2", Role.CARE_GIVER)
    RequestService.assign_caregiver(
        request_id=service_request.id,
        actor=actor(expert_user),
        caregiver_id=caregiver_user.id,
    )

    with pytest.raises(Forbidden):
        RequestService.caregiver_reject(request_id=service_request.id, actor=actor(other))


def test_reject_requires_assigned_status(service_request, expert_user, caregiver_user, actor):
    RequestService.assign_caregiver(
        request_id=service_request.id,
        actor=actor(expert_user),
        caregiver_id=caregiver_user.id,
    )
    RequestService.caregiver_reject(request_id=service_request.id, actor=actor(caregiver_user))

    # the caregiver is no longer assigned, so the relation no longer holds
    with pytest.raises(Forbidden):
        RequestService.caregiver_reject(request_id=service_request.id, actor=actor(caregiver_user))


def test_reject_on_non_assigned_status_is_invalid_precondition(service_request, expert_user, caregiver_user, actor):
    RequestService.assign_caregiver(
        request_id=service_request.id,
        actor=actor(expert_user),
        caregiver_id=caregiver_user.id,
    )
    RequestService.update_request(
        request_id=service_request.id,
        actor=actor(expert_user),
        patch=RequestPatch(status=RequestStatus.NEW),
    )

    with pytest.raises(InvalidPrecondition) as exc:
        RequestService.caregiver_reject(request_id=service_request.id, actor=actor(caregiver_user))
    assert exc.value.reason == "not_assigned"


# ----------------------------
# Close
# ----------------------------
def test_close_is_terminal(service_request, expert_user, caregiver_user, actor):
    sr = RequestService.close_request(request_id=service_request.id, actor=actor(expert_user))
    assert sr.status == RequestStatus.CLOSED
    assert latest_log(sr, RequestAction.REQUEST_CLOSED).payload == {"previousStatus": RequestStatus.DOCS_PENDING}

    with pytest.raises(InvalidPrecondition) as exc:
        RequestService.close_request(request_id=service_request.id, actor=actor(expert_user))
    assert exc.value.reason == "request_closed"

    with pytest.raises(InvalidPrecondition):
        RequestService.assign_caregiver(
            request_id=service_request.id,
            actor=actor(expert_user),
            caregiver_id=caregiver_user.id,
        )


def test_support_cannot_close(service_request, support_user, actor):
    with pytest.raises(Forbidden):
        RequestService.close_request(request_id=service_request.id, actor=actor(support_user))


# ----------------------------
# Field patch
# ----------------------------
def test_update_applies_only_supplied_fields(service_request, expert_user, actor):
    sr = RequestService.update_request(
        request_id=service_request.id,
        actor=actor(expert_user),
        patch=RequestPatch(city="Isfahan"),
    )

    assert sr.city == "Isfahan"
    assert sr.time == "morning"
    assert sr.status == RequestStatus.DOCS_PENDING

    log = latest_log(sr, RequestAction.REQUEST_UPDATED)
    assert log.payload == {"changes": {"city": "Isfahan"}}


def test_update_none_clears_nullable_and_blanks_text(service_request, expert_user, caregiver_user, actor):
    RequestService.update_request(
        request_id=service_request.id,
        actor=actor(expert_user),
        patch=RequestPatch(assigned_caregiver_id=caregiver_user.id, current_owner_id=expert_user.id),
    )

    sr = RequestService.update_request(
        request_id=service_request.id,
        actor=actor(expert_user),
        patch=RequestPatch(assigned_caregiver_id=None, notes=None),
    )

    assert sr.assigned_caregiver_id is None
    assert sr.current_owner_id == expert_user.id
    assert sr.notes == ""


def test_update_records_status_transition(service_request, expert_user, actor):
    sr = RequestService.update_request(
        request_id=service_request.id,
        actor=actor(expert_user),
        patch=RequestPatch(status=RequestStatus.NEW),
    )

    payload = latest_log(sr, RequestAction.REQUEST_UPDATED).payload
    assert payload["statusFrom"] == RequestStatus.DOCS_PENDING
    assert payload["statusTo"] == RequestStatus.NEW
    assert payload["changes"] == {"status": RequestStatus.NEW}


def test_update_rejects_empty_patch_and_bad_values(service_request, expert_user, actor):
    with pytest.raises(ValidationFailure):
        RequestService.update_request(request_id=service_request.id, actor=actor(expert_user), patch=RequestPatch())

    with pytest.raises(ValidationFailure):
        RequestService.update_request(
            request_id=service_request.id,
            actor=actor(expert_user),
            patch=RequestPatch(status="DONE"),
        )

    with pytest.raises(ValidationFailure):
        RequestService.update_request(
            request_id=service_request.id,
            actor=actor(expert_user),
            patch=RequestPatch(service_item_id=None),
        )


def test_status_change_refused_on_closed_request(service_request, expert_user, actor):
    RequestService.close_request(request_id=service_request.id, actor=actor(expert_user))

    with pytest.raises(InvalidPrecondition):
        RequestService.update_request(
            request_id=service_request.id,
            actor=actor(expert_user),
            patch=RequestPatch(status=RequestStatus.NEW),
        )

    # non-status edits stay possible
    sr = RequestService.update_request(
        request_id=service_request.id,
        actor=actor(expert_user),
        patch=RequestPatch(notes="archived"),
    )
    assert sr.notes == "archived"


def test_request_patch_from_mapping_keeps_absent_slots_unset():
    patch = RequestPatch.from_mapping({"city": "Yazd", "support_type": None, "unknown": 1})
    assert patch.supplied() == {"city": "Yazd", "support_type": None}
    assert patch.status is UNSET
    assert not patch.is_empty()


# ----------------------------
# Upload capability
# ----------------------------
def test_mint_upload_token(service_request, expert_user, actor, settings):
    settings.DOC_UPLOAD_TOKEN_TTL = timedelta(hours=72)
    before = now()

    cap = RequestService.mint_upload_token(request_id=service_request.id, actor=actor(expert_user))

    assert re.fullmatch(r"[0-9a-f]{48}", cap.token)
    assert cap.patient_id == service_request.patient_id
    assert before + timedelta(hours=71) < cap.expires_at <= now() + timedelta(hours=72)

    service_request.refresh_from_db()
    assert service_request.doc_upload_token == cap.token

    log = latest_log(service_request, RequestAction.DOC_LINK_CREATED)
    assert cap.token not in json.dumps(log.payload)


def test_mint_upload_token_requires_staff(service_request, customer_user, actor):
    with pytest.raises(Forbidden):
        RequestService.mint_upload_token(request_id=service_request.id, actor=actor(customer_user))
