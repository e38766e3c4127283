# hc_core/common/tests/test_error_envelope.py
import pytest
from rest_framework.exceptions import NotFound, ValidationError

from hc_core.common.api.exceptions import (
    EntityNotFound,
    Forbidden,
    InvalidPrecondition,
    Unauthenticated,
    ValidationFailure,
    api_exception_handler,
    build_error_envelope,
    ensure_request_id,
)
from hc_core.common.patch import UNSET


class _Req:
    pass


def _handle(exc):
    request = _Req()
    request.request_id = "rid-1"
    return api_exception_handler(exc, {"request": request, "view": None})


@pytest.mark.parametrize(
    "exc, status, code",
    [
        (Unauthenticated(), 401, "not_authenticated"),
        (Forbidden(), 403, "permission_denied"),
        (EntityNotFound("Request not found."), 404, "not_found"),
        (ValidationFailure({"phone": "This field is required."}), 400, "validation_error"),
        (InvalidPrecondition("not_in_cancel_queue"), 409, "not_in_cancel_queue"),
    ],
)
def test_taxonomy_maps_to_status_and_code(exc, status, code):
    response = _handle(exc)
    assert response.status_code == status
    assert response.data["error"]["code"] == code
    assert response.data["error"]["request_id"] == "rid-1"


def test_detail_becomes_message():
    response = _handle(NotFound("Patient not found."))
    assert response.data["error"]["message"] == "Patient not found."
    assert response.data["error"]["details"] is None


def test_field_errors_land_in_details():
    response = _handle(ValidationError({"city": ["Too long."]}))
    assert response.data["error"]["message"] == "Request failed."
    assert response.data["error"]["details"] == {"city": ["Too long."]}


def test_unhandled_error_is_500_envelope():
    response = _handle(RuntimeError("boom"))
    assert response.status_code == 500
    assert response.data["error"]["code"] == "server_error"


def test_request_id_is_stable():
    request = _Req()
    rid = ensure_request_id(request)
    assert rid == ensure_request_id(request)
    assert build_error_envelope(request=request, code="x", message="y")["error"]["request_id"] == rid


def test_unset_is_falsy_and_distinct_from_none():
    assert not UNSET
    assert UNSET is not None
    assert repr(UNSET) == "UNSET"
