# hc_core/patients/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from hc_core.common.api.exceptions import EntityNotFound
from hc_core.common.api.pagination import paginate
from hc_core.common.permissions import MatrixPermission, Operation, Resource, is_allowed
from hc_core.documents.api.serializers import DocumentSerializer
from hc_core.documents.selectors import list_documents
from hc_core.iam.identity import identify
from hc_core.patients.api.serializers import (
    PatientAdmitSerializer,
    PatientSerializer,
    PatientUpdateSerializer,
    RequesterLinkSerializer,
    RequesterLinkUpdateSerializer,
)
from hc_core.patients.models import Patient, RequesterLink
from hc_core.patients.selectors import (
    find_by_national_code,
    get_patient_for_actor,
    get_requester_link,
    list_patients_for_actor,
)
from hc_core.patients.services import (
    PatientFragment,
    PatientPatch,
    PatientService,
    RequesterLinkPatch,
    RequesterLinkService,
)
from hc_core.service_requests.api.serializers import ServiceRequestSerializer
from hc_core.service_requests.selectors import requests_for_patient


class PatientViewSet(viewsets.ViewSet):
    """
    Patient records.

    - list: staff see everyone, requesters see the patients they are linked to
    - retrieve: embeds document metadata (when readable) and visible requests
    - search: staff lookup by exact national code
    """
    permission_classes = [MatrixPermission]
    matrix_resource = Resource.PATIENT
    matrix_actions = {
        "list": Operation.LIST,
        "create": Operation.CREATE,
        "retrieve": Operation.VIEW,
        "partial_update": Operation.UPDATE,
        "search": Operation.SEARCH,
    }
    lookup_value_regex = r"\d+"

    serializer_class = PatientSerializer
    queryset = Patient.objects.none()

    def _detail(self, actor, patient: Patient) -> dict:
        data = dict(PatientSerializer(patient).data)

        if is_allowed(actor, Resource.DOCUMENT, Operation.VIEW, patient):
            data["documents"] = DocumentSerializer(list_documents(actor, patient.id), many=True).data
        else:
            data["documents"] = []

        data["requests"] = ServiceRequestSerializer(requests_for_patient(actor, patient.id), many=True).data
        return data

    @extend_schema(tags=["Patients"], responses={200: PatientSerializer(many=True)})
    def list(self, request):
        qs = list_patients_for_actor(identify(request))
        return paginate(request, qs, PatientSerializer)

    @extend_schema(
        tags=["Patients"],
        request=PatientAdmitSerializer,
        responses={201: PatientSerializer, 200: PatientSerializer},
    )
    def create(self, request):
        ser = PatientAdmitSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = dict(ser.validated_data)

        national_code = data.pop("national_code")
        patient, created = PatientService.admit(
            actor=identify(request),
            national_code=national_code,
            fragment=PatientFragment(national_code=national_code, **data),
        )
        return Response(
            PatientSerializer(patient).data,
            status=status.HTTP_201_CREATED if created else status.HTTP_200_OK,
        )

    # PatientSerializer fields plus "documents" and "requests"
    @extend_schema(tags=["Patients"], responses={200: OpenApiTypes.OBJECT})
    def retrieve(self, request, pk=None):
        actor = identify(request)
        patient = get_patient_for_actor(actor, int(pk))
        return Response(self._detail(actor, patient))

    @extend_schema(tags=["Patients"], request=PatientUpdateSerializer, responses={200: PatientSerializer})
    def partial_update(self, request, pk=None):
        ser = PatientUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        patient = PatientService.update(
            actor=identify(request),
            patient_id=int(pk),
            patch=PatientPatch.from_mapping(ser.validated_data),
        )
        return Response(PatientSerializer(patient).data)

    @extend_schema(
        tags=["Patients"],
        responses={200: PatientSerializer},
        parameters=[
            OpenApiParameter(
                name="national_code",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=True,
                description="Exact national code.",
            ),
        ],
    )
    @action(detail=False, methods=["get"])
    def search(self, request):
        patient = find_by_national_code(identify(request), request.query_params.get("national_code"))
        if patient is None:
            raise EntityNotFound("No patient with this national code.")
        return Response(PatientSerializer(patient).data)


class RequesterViewSet(viewsets.ViewSet):
    """
    Requester links (staff). PATCH designates secondary standing or grants
    history access.
    """
    permission_classes = [MatrixPermission]
    matrix_resource = Resource.REQUESTER
    matrix_actions = {
        "retrieve": Operation.VIEW,
        "partial_update": Operation.UPDATE,
    }
    lookup_value_regex = r"\d+"

    serializer_class = RequesterLinkSerializer
    queryset = RequesterLink.objects.none()

    @extend_schema(tags=["Patients"], responses={200: RequesterLinkSerializer})
    def retrieve(self, request, pk=None):
        link = get_requester_link(identify(request), int(pk))
        return Response(RequesterLinkSerializer(link).data)

    @extend_schema(tags=["Patients"], request=RequesterLinkUpdateSerializer, responses={200: RequesterLinkSerializer})
    def partial_update(self, request, pk=None):
        ser = RequesterLinkUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        link = RequesterLinkService.update(
            actor=identify(request),
            link_id=int(pk),
            patch=RequesterLinkPatch.from_mapping(ser.validated_data),
        )
        return Response(RequesterLinkSerializer(link).data)
