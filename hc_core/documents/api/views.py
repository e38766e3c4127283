# hc_core/documents/api/views.py
from __future__ import annotations

from drf_spectacular.utils import extend_schema, inline_serializer
from rest_framework import serializers, status, viewsets
from rest_framework.permissions import AllowAny
from rest_framework.response import Response

from hc_core.common.permissions import MatrixPermission, Operation, Resource
from hc_core.documents.api.serializers import (
    DocumentDetailSerializer,
    DocumentSerializer,
    DocumentStatusSerializer,
    DocumentSubmitSerializer,
)
from hc_core.documents.models import PatientDocument
from hc_core.documents.selectors import get_document, list_documents
from hc_core.documents.services import DocumentService
from hc_core.iam.identity import identify


class PatientDocumentViewSet(viewsets.ViewSet):
    """
    /patients/{patient_pk}/documents/

    Thin API layer: serializers validate, DocumentService writes, selectors read.
    Upload is open to anonymous callers holding an upload token; the service
    decides between the account path and the token path.
    """
    permission_classes = [MatrixPermission]
    matrix_resource = Resource.DOCUMENT
    matrix_actions = {
        "list": Operation.VIEW,
        "retrieve": Operation.VIEW,
        "partial_update": Operation.SET_STATUS,
    }

    serializer_class = DocumentSerializer
    queryset = PatientDocument.objects.none()

    def get_permissions(self):
        if self.action == "create":
            return [AllowAny()]
        return super().get_permissions()

    @extend_schema(tags=["Documents"], responses={200: DocumentSerializer(many=True)})
    def list(self, request, patient_pk=None):
        qs = list_documents(identify(request), int(patient_pk))
        return Response(DocumentSerializer(qs, many=True).data)

    @extend_schema(
        tags=["Documents"],
        request=DocumentSubmitSerializer,
        responses={
            201: inline_serializer(
                name="DocumentSubmitResponse",
                fields={"document": DocumentSerializer(), "replaced": serializers.BooleanField()},
            )
        },
        auth=[],
    )
    def create(self, request, patient_pk=None):
        ser = DocumentSubmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        document, replaced = DocumentService.submit(
            patient_id=int(patient_pk),
            doc_type=ser.validated_data["type"],
            content=ser.validated_data["data"],
            metadata=ser.to_metadata(),
            actor=identify(request),
            upload_token=ser.validated_data.get("upload_token") or None,
        )
        return Response(
            {"document": DocumentSerializer(document).data, "replaced": replaced},
            status=status.HTTP_201_CREATED,
        )

    @extend_schema(tags=["Documents"], responses={200: DocumentDetailSerializer})
    def retrieve(self, request, patient_pk=None, pk=None):
        document = get_document(identify(request), int(patient_pk), int(pk))
        return Response(DocumentDetailSerializer(document).data)

    @extend_schema(tags=["Documents"], request=DocumentStatusSerializer, responses={200: DocumentSerializer})
    def partial_update(self, request, patient_pk=None, pk=None):
        ser = DocumentStatusSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        document = DocumentService.set_status(
            document_id=int(pk),
            status=ser.validated_data["status"],
            actor=identify(request),
            patient_id=int(patient_pk),
        )
        return Response(DocumentSerializer(document).data)
