# hc_core/documents/tests/test_document_store.py
from datetime import timedelta

import pytest
from django.utils.timezone import now

from hc_core.common.api.exceptions import EntityNotFound, Forbidden, Unauthenticated, ValidationFailure
from hc_core.documents.models import DocumentStatus, DocumentType, PatientDocument
from hc_core.documents.services import DocumentMetadata, DocumentService
from hc_core.service_requests.models import RequestStatus, ServiceRequest
from hc_core.service_requests.services import RequestService

pytestmark = pytest.mark.django_db

JPEG = DocumentMetadata(mime_type="image/jpeg")


def _submit(patient_id, *, actor=None, token=None, doc_type=DocumentType.NATIONAL_CARD_FRONT, content=b"scan"):
    return DocumentService.submit(
        patient_id=patient_id,
        doc_type=doc_type,
        content=content,
        metadata=JPEG,
        actor=actor,
        upload_token=token,
    )


def test_linked_requester_uploads(service_request, customer_user, actor):
    document, replaced = _submit(service_request.patient_id, actor=actor(customer_user))

    assert replaced is False
    assert document.status == DocumentStatus.PENDING
    assert document.size == 4
    assert document.uploaded_by_requester_id == service_request.requester_id


def test_reupload_replaces_and_resets_review(service_request, customer_user, expert_user, actor):
    first, _ = _submit(service_request.patient_id, actor=actor(customer_user), content=b"v1")
    DocumentService.set_status(document_id=first.id, status=DocumentStatus.APPROVED, actor=actor(expert_user))

    second, replaced = _submit(service_request.patient_id, actor=actor(customer_user), content=b"version-2")

    assert replaced is True
    rows = PatientDocument.objects.filter(patient_id=service_request.patient_id, type=DocumentType.NATIONAL_CARD_FRONT)
    assert list(rows.values_list("id", flat=True)) == [second.id]
    assert second.status == DocumentStatus.PENDING
    assert second.verified_by_id is None
    assert bytes(rows.get().content) == b"version-2"


def test_distinct_types_coexist(service_request, customer_user, actor):
    _submit(service_request.patient_id, actor=actor(customer_user))
    _submit(service_request.patient_id, actor=actor(customer_user), doc_type=DocumentType.NATIONAL_CARD_BACK)

    assert PatientDocument.objects.filter(patient_id=service_request.patient_id).count() == 2


def test_upload_does_not_touch_request_status(service_request, customer_user, actor):
    _submit(service_request.patient_id, actor=actor(customer_user))

    service_request.refresh_from_db()
    assert service_request.status == RequestStatus.DOCS_PENDING


def test_anonymous_upload_with_token(service_request, expert_user, actor):
    capability = RequestService.mint_upload_token(request_id=service_request.id, actor=actor(expert_user))

    document, _ = _submit(capability.patient_id, token=capability.token)
    again, replaced = _submit(capability.patient_id, token=capability.token, content=b"retake")

    assert document.uploaded_by_requester_id == service_request.requester_id
    assert replaced is True
    assert again.status == DocumentStatus.PENDING


def test_token_is_scoped_to_its_patient(service_request, verified_patient, expert_user, actor):
    capability = RequestService.mint_upload_token(request_id=service_request.id, actor=actor(expert_user))

    with pytest.raises(Unauthenticated):
        _submit(verified_patient.id, token=capability.token)


def test_expired_token_is_refused(service_request, expert_user, actor):
    capability = RequestService.mint_upload_token(request_id=service_request.id, actor=actor(expert_user))
    ServiceRequest.objects.filter(pk=service_request.pk).update(doc_upload_expires_at=now() - timedelta(seconds=1))

    with pytest.raises(Unauthenticated):
        _submit(service_request.patient_id, token=capability.token)


def test_anonymous_upload_without_token_is_refused(service_request):
    with pytest.raises(Unauthenticated):
        _submit(service_request.patient_id)
    with pytest.raises(Unauthenticated):
        _submit(service_request.patient_id, token="not-a-token")


def test_unlinked_customer_without_token_is_forbidden(service_request, other_customer, actor):
    with pytest.raises(Forbidden):
        _submit(service_request.patient_id, actor=actor(other_customer))


def test_empty_content_and_unknown_type_are_rejected(service_request, customer_user, actor):
    with pytest.raises(ValidationFailure):
        _submit(service_request.patient_id, actor=actor(customer_user), content=b"")
    with pytest.raises(ValidationFailure):
        _submit(service_request.patient_id, actor=actor(customer_user), doc_type="PASSPORT")


def test_set_status_records_and_clears_verifier(service_request, customer_user, expert_user, actor):
    document, _ = _submit(service_request.patient_id, actor=actor(customer_user))

    document = DocumentService.set_status(document_id=document.id, status=DocumentStatus.REJECTED, actor=actor(expert_user))
    assert document.status == DocumentStatus.REJECTED
    assert document.verified_by_id == expert_user.id

    document = DocumentService.set_status(document_id=document.id, status=DocumentStatus.PENDING, actor=actor(expert_user))
    assert document.verified_by_id is None


def test_set_status_is_expert_only(service_request, customer_user, support_user, expert_user, actor):
    document, _ = _submit(service_request.patient_id, actor=actor(customer_user))

    for user in (customer_user, support_user):
        with pytest.raises(Forbidden):
            DocumentService.set_status(document_id=document.id, status=DocumentStatus.APPROVED, actor=actor(user))

    with pytest.raises(EntityNotFound):
        DocumentService.set_status(document_id=999999, status=DocumentStatus.APPROVED, actor=actor(expert_user))
    with pytest.raises(ValidationFailure):
        DocumentService.set_status(document_id=document.id, status="MAYBE", actor=actor(expert_user))
