# hc_core/documents/tests/test_documents_api.py
import base64

import pytest

from hc_core.documents.models import DocumentStatus, PatientDocument
from hc_core.service_requests.services import RequestService

pytestmark = pytest.mark.django_db


def _payload(content=b"card-front", **extra):
    body = {
        "type": "NATIONAL_CARD_FRONT",
        "mime_type": "image/png",
        "data": base64.b64encode(content).decode("ascii"),
    }
    body.update(extra)
    return body


def _url(patient_id, document_id=None):
    base = f"/api/v1/patients/{patient_id}/documents/"
    return f"{base}{document_id}/" if document_id else base


def test_linked_requester_uploads_and_reads_back(client_for, service_request, customer_user):
    client = client_for(customer_user)

    r = client.post(_url(service_request.patient_id), _payload(title="ID card"), format="json")
    assert r.status_code == 201, r.data
    assert r.data["replaced"] is False
    document_id = r.data["document"]["id"]
    assert r.data["document"]["status"] == DocumentStatus.PENDING
    assert r.data["document"]["title"] == "ID card"

    r = client.get(_url(service_request.patient_id))
    assert r.status_code == 200, r.data
    assert [d["id"] for d in r.data] == [document_id]
    assert "data" not in r.data[0]

    r = client.get(_url(service_request.patient_id, document_id))
    assert r.status_code == 200, r.data
    assert base64.b64decode(r.data["data"]) == b"card-front"


def test_data_url_prefix_is_accepted(client_for, service_request, customer_user):
    encoded = base64.b64encode(b"png-bytes").decode("ascii")
    r = client_for(customer_user).post(
        _url(service_request.patient_id),
        _payload(data=f"data:image/png;base64,{encoded}"),
        format="json",
    )
    assert r.status_code == 201, r.data
    assert r.data["document"]["size"] == len(b"png-bytes")


def test_invalid_base64_is_400(client_for, service_request, customer_user):
    r = client_for(customer_user).post(_url(service_request.patient_id), _payload(data="%%%"), format="json")
    assert r.status_code == 400
    assert r.data["error"]["code"] == "validation_error"


def test_second_upload_reports_replacement(client_for, service_request, customer_user):
    client = client_for(customer_user)
    client.post(_url(service_request.patient_id), _payload(b"one"), format="json")

    r = client.post(_url(service_request.patient_id), _payload(b"two"), format="json")
    assert r.status_code == 201, r.data
    assert r.data["replaced"] is True
    assert PatientDocument.objects.filter(patient_id=service_request.patient_id).count() == 1


def test_anonymous_upload_through_doc_link(anon_client, client_for, service_request, expert_user):
    link = client_for(expert_user).post(f"/api/v1/requests/{service_request.id}/doc-link/")
    assert link.status_code == 201, link.data

    r = anon_client.post(
        _url(link.data["patient_id"]),
        _payload(upload_token=link.data["token"]),
        format="json",
    )
    assert r.status_code == 201, r.data
    assert r.data["document"]["uploaded_by_requester_id"] == service_request.requester_id


def test_anonymous_upload_without_token_is_401(anon_client, service_request):
    r = anon_client.post(_url(service_request.patient_id), _payload(), format="json")
    assert r.status_code == 401
    assert r.data["error"]["code"] == "not_authenticated"

    r = anon_client.post(_url(service_request.patient_id), _payload(upload_token="bogus"), format="json")
    assert r.status_code == 401


def test_reading_documents_requires_elevated_link_or_staff(
    client_for,
    service_request,
    customer_user,
    other_customer,
    support_user,
):
    client_for(customer_user).post(_url(service_request.patient_id), _payload(), format="json")

    assert client_for(other_customer).get(_url(service_request.patient_id)).status_code == 403
    assert client_for(support_user).get(_url(service_request.patient_id)).status_code == 200
    assert client_for(support_user).get(_url(999999)).status_code == 404


def test_expert_reviews_document(client_for, service_request, customer_user, expert_user):
    created = client_for(customer_user).post(_url(service_request.patient_id), _payload(), format="json")
    url = _url(service_request.patient_id, created.data["document"]["id"])

    r = client_for(customer_user).patch(url, {"status": "APPROVED"}, format="json")
    assert r.status_code == 403

    r = client_for(expert_user).patch(url, {"status": "APPROVED"}, format="json")
    assert r.status_code == 200, r.data
    assert r.data["status"] == DocumentStatus.APPROVED
    assert r.data["verified_by_id"] == expert_user.id

    r = client_for(expert_user).patch(_url(service_request.patient_id, 999999), {"status": "APPROVED"}, format="json")
    assert r.status_code == 404


def test_upload_link_minting_over_service_is_multi_use(anon_client, service_request, expert_user, actor):
    capability = RequestService.mint_upload_token(request_id=service_request.id, actor=actor(expert_user))

    for doc_type in ("NATIONAL_CARD_FRONT", "NATIONAL_CARD_BACK"):
        r = anon_client.post(
            _url(service_request.patient_id),
            _payload(type=doc_type, upload_token=capability.token),
            format="json",
        )
        assert r.status_code == 201, r.data
