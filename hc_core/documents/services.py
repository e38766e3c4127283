# hc_core/documents/services.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import date
from typing import Optional

from django.db import transaction
from django.utils.timezone import now

from hc_core.audit.services import AuditService
from hc_core.common.api.exceptions import EntityNotFound, Unauthenticated, ValidationFailure
from hc_core.common.permissions import Operation, Resource, authorize, is_allowed, missing
from hc_core.documents.models import DocumentStatus, DocumentType, PatientDocument
from hc_core.iam.identity import Actor
from hc_core.patients.models import Patient
from hc_core.patients.selectors import links_for_actor
from hc_core.service_requests.models import ServiceRequest

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class DocumentMetadata:
    mime_type: str
    title: str = ""
    doctor_name: str = ""
    visit_date: Optional[date] = None
    visit_reason: str = ""
    visit_location: str = ""
    notes: str = ""
    is_compressed: bool = False
    original_size: Optional[int] = None


class DocumentService:
    """
    Document verification store.

    - submit: at most one current document per (patient, type); a re-upload
      deletes the prior row and creates a fresh PENDING one (one transaction)
    - set_status: EXPERT/ADMIN only; PENDING clears the verifier
    - no cascade into the owning request's status
    """

    @staticmethod
    def _token_request(*, patient_id: int, upload_token: str) -> Optional[ServiceRequest]:
        return (
            ServiceRequest.objects.filter(
                doc_upload_token=upload_token,
                doc_upload_expires_at__gt=now(),
                patient_id=patient_id,
            )
            .order_by("-doc_upload_expires_at")
            .first()
        )

    @staticmethod
    @transaction.atomic
    def submit(
        *,
        patient_id: int,
        doc_type: str,
        content: bytes,
        metadata: DocumentMetadata,
        actor: Optional[Actor] = None,
        upload_token: Optional[str] = None,
    ) -> tuple[PatientDocument, bool]:
        """
        Authorized either as staff / a linked requester of the patient, or by
        an unexpired upload token minted for a request of this patient.
        Returns (document, replaced).
        """
        if doc_type not in DocumentType.values:
            raise ValidationFailure({"type": f"Unknown document type '{doc_type}'."})
        if not content:
            raise ValidationFailure({"data": "Document content is required."})
        if not (metadata.mime_type or "").strip():
            raise ValidationFailure({"mime_type": "This field is required."})

        uploader_link_id: Optional[int] = None
        via = "account"

        patient = Patient.objects.select_for_update().filter(id=patient_id).first()

        registered = actor is not None and actor.is_registered
        if registered and patient is not None and is_allowed(actor, Resource.DOCUMENT, Operation.SUBMIT, patient):
            link = links_for_actor(actor, patient.id).order_by("id").first()
            uploader_link_id = link.id if link is not None else None
        elif upload_token:
            request = DocumentService._token_request(patient_id=patient_id, upload_token=upload_token)
            if request is None:
                raise Unauthenticated("Invalid or expired upload token.")
            uploader_link_id = request.requester_id
            via = "token"
        elif registered:
            if patient is None:
                raise missing(actor, Resource.PATIENT, "Patient not found.")
            authorize(actor, Resource.DOCUMENT, Operation.SUBMIT, patient)
        else:
            raise Unauthenticated()

        prior = PatientDocument.objects.filter(patient_id=patient_id, type=doc_type).first()
        replaced = prior is not None
        if prior is not None:
            prior.delete()

        document = PatientDocument.objects.create(
            patient_id=patient_id,
            type=doc_type,
            title=metadata.title or "",
            doctor_name=metadata.doctor_name or "",
            visit_date=metadata.visit_date,
            visit_reason=metadata.visit_reason or "",
            visit_location=metadata.visit_location or "",
            notes=metadata.notes or "",
            mime_type=metadata.mime_type.strip(),
            content=bytes(content),
            size=len(content),
            original_size=metadata.original_size,
            is_compressed=bool(metadata.is_compressed),
            status=DocumentStatus.PENDING,
            uploaded_by_requester_id=uploader_link_id,
            verified_by=None,
        )

        AuditService.log(
            event_code="document.submitted",
            entity=document,
            actor_user_id=actor.user_id if registered and via == "account" else None,
            metadata={
                "patient_id": patient_id,
                "type": doc_type,
                "replaced": replaced,
                "via": via,
                "size": document.size,
            },
        )
        logger.info(
            "Document submitted id=%s patient_id=%s type=%s replaced=%s via=%s",
            document.id,
            patient_id,
            doc_type,
            replaced,
            via,
        )
        return document, replaced

    @staticmethod
    @transaction.atomic
    def set_status(
        *,
        document_id: int,
        status: str,
        actor: Optional[Actor],
        patient_id: Optional[int] = None,
    ) -> PatientDocument:
        authorize(actor, Resource.DOCUMENT, Operation.SET_STATUS)

        if status not in DocumentStatus.values:
            raise ValidationFailure({"status": f"Unknown document status '{status}'."})

        qs = PatientDocument.objects.select_for_update().filter(id=document_id)
        if patient_id is not None:
            qs = qs.filter(patient_id=patient_id)
        document = qs.first()
        if document is None:
            raise EntityNotFound("Document not found.")

        previous = document.status
        document.status = status
        document.verified_by_id = None if status == DocumentStatus.PENDING else actor.user_id
        document.save(update_fields=["status", "verified_by", "updated_at"])

        AuditService.log(
            event_code="document.status_changed",
            entity=document,
            actor_user_id=actor.user_id,
            metadata={"patient_id": document.patient_id, "from": previous, "to": status},
        )
        logger.info(
            "Document status id=%s %s->%s actor_user_id=%s",
            document.id,
            previous,
            status,
            actor.user_id,
        )
        return document
