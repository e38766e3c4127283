# hc_core/documents/selectors.py
from __future__ import annotations

from typing import Optional

from django.db.models import QuerySet

from hc_core.common.api.exceptions import EntityNotFound
from hc_core.common.permissions import Operation, Resource, authorize, missing
from hc_core.documents.models import PatientDocument
from hc_core.iam.identity import Actor
from hc_core.patients.models import Patient


def _readable_patient(actor: Optional[Actor], patient_id: int) -> Patient:
    patient = Patient.objects.filter(id=patient_id).first()
    if patient is None:
        raise missing(actor, Resource.DOCUMENT, "Patient not found.")
    authorize(actor, Resource.DOCUMENT, Operation.VIEW, patient)
    return patient


def list_documents(actor: Optional[Actor], patient_id: int) -> QuerySet[PatientDocument]:
    """Metadata only; binary content is deferred."""
    patient = _readable_patient(actor, patient_id)
    return PatientDocument.objects.filter(patient=patient).defer("content").order_by("-created_at", "-id")


def get_document(actor: Optional[Actor], patient_id: int, document_id: int) -> PatientDocument:
    patient = _readable_patient(actor, patient_id)
    document = PatientDocument.objects.filter(id=document_id, patient=patient).first()
    if document is None:
        raise EntityNotFound("Document not found.")
    return document
