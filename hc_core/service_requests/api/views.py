# hc_core/service_requests/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import status, viewsets
from rest_framework.decorators import action
from rest_framework.response import Response

from hc_core.common.api.exceptions import ValidationFailure
from hc_core.common.api.pagination import paginate
from hc_core.common.permissions import MatrixPermission, Operation, Resource
from hc_core.iam.identity import identify
from hc_core.patients.services import PatientFragment
from hc_core.service_requests.api.serializers import (
    AssignCaregiverSerializer,
    ChangeRequestSerializer,
    RequestCreateSerializer,
    RequestUpdateSerializer,
    ServiceRequestDetailSerializer,
    ServiceRequestSerializer,
    SupportCancelSerializer,
    SupportChangeSerializer,
    UploadCapabilitySerializer,
)
from hc_core.service_requests.filters import RequestFilter
from hc_core.service_requests.models import ServiceRequest
from hc_core.service_requests.selectors import get_request_for_actor, list_requests_for_actor
from hc_core.service_requests.services import (
    ChangeSet,
    RequestPatch,
    RequestService,
    SupportService,
)


class ServiceRequestViewSet(viewsets.ViewSet):
    """
    Thin API layer:
    - serializers validate input
    - RequestService / SupportService own every write (and re-authorize)
    - selectors own visibility for reads
    """
    permission_classes = [MatrixPermission]
    matrix_resource = Resource.REQUEST
    matrix_actions = {
        "list": Operation.LIST,
        "create": Operation.CREATE,
        "retrieve": Operation.VIEW,
        "partial_update": Operation.UPDATE,
        "assign_caregiver": Operation.ASSIGN,
        "reject": Operation.CAREGIVER_REJECT,
        "close": Operation.CLOSE,
        "doc_link": Operation.MINT_UPLOAD_TOKEN,
        "cancel": Operation.ESCALATE,
        "change": Operation.ESCALATE,
        "support_cancel": Operation.RESOLVE_ESCALATION,
        "support_change": Operation.RESOLVE_ESCALATION,
    }

    lookup_value_regex = r"\d+"

    # drf-spectacular
    serializer_class = ServiceRequestSerializer
    queryset = ServiceRequest.objects.none()

    def _detail(self, sr: ServiceRequest) -> Response:
        # not re-read through the selector: a caregiver loses visibility by rejecting
        return Response(ServiceRequestDetailSerializer(sr).data, status=status.HTTP_200_OK)

    # ----------------------------
    # Reads
    # ----------------------------
    @extend_schema(
        tags=["Requests"],
        responses={200: ServiceRequestSerializer(many=True)},
        parameters=[
            OpenApiParameter(name="status", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False, many=True),
            OpenApiParameter(name="support_type", type=OpenApiTypes.STR, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="in_support_queue", type=OpenApiTypes.BOOL, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="patient", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
            OpenApiParameter(name="assigned_caregiver", type=OpenApiTypes.INT, location=OpenApiParameter.QUERY, required=False),
        ],
    )
    def list(self, request):
        qs = list_requests_for_actor(identify(request))

        f = RequestFilter(request.query_params, queryset=qs)
        if not f.is_valid():
            raise ValidationFailure(f.errors)

        return paginate(request, f.qs, ServiceRequestSerializer)

    @extend_schema(tags=["Requests"], responses={200: ServiceRequestDetailSerializer})
    def retrieve(self, request, pk=None):
        sr = get_request_for_actor(identify(request), int(pk))
        return Response(ServiceRequestDetailSerializer(sr).data)

    # ----------------------------
    # Intake (guests allowed with a phone)
    # ----------------------------
    @extend_schema(tags=["Requests"], request=RequestCreateSerializer, responses={201: ServiceRequestDetailSerializer}, auth=[])
    def create(self, request):
        ser = RequestCreateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)
        data = ser.validated_data

        fragment = PatientFragment(**data["patient"]) if data.get("patient") else None
        sr = RequestService.create_request(
            actor=identify(request, guest_phone=data.get("phone")),
            requester_phone=data.get("phone") or None,
            patient_id=data.get("patient_id"),
            patient_fragment=fragment,
            service_item_id=data.get("service_item_id"),
            city=data["city"],
            time=data["time"],
            notes=data["notes"],
        )
        return Response(ServiceRequestDetailSerializer(sr).data, status=status.HTTP_201_CREATED)

    # ----------------------------
    # Staff writes
    # ----------------------------
    @extend_schema(tags=["Requests"], request=RequestUpdateSerializer, responses={200: ServiceRequestDetailSerializer})
    def partial_update(self, request, pk=None):
        ser = RequestUpdateSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        sr = RequestService.update_request(
            request_id=int(pk),
            actor=identify(request),
            patch=RequestPatch.from_mapping(ser.validated_data),
        )
        return self._detail(sr)

    @extend_schema(tags=["Requests"], request=AssignCaregiverSerializer, responses={200: ServiceRequestDetailSerializer})
    @action(detail=True, methods=["post"], url_path="assign-caregiver")
    def assign_caregiver(self, request, pk=None):
        ser = AssignCaregiverSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        sr = RequestService.assign_caregiver(
            request_id=int(pk),
            actor=identify(request),
            caregiver_id=ser.validated_data["caregiver_id"],
        )
        return self._detail(sr)

    @extend_schema(tags=["Requests"], request=None, responses={200: ServiceRequestDetailSerializer})
    @action(detail=True, methods=["post"])
    def reject(self, request, pk=None):
        sr = RequestService.caregiver_reject(request_id=int(pk), actor=identify(request))
        return self._detail(sr)

    @extend_schema(tags=["Requests"], request=None, responses={200: ServiceRequestDetailSerializer})
    @action(detail=True, methods=["post"])
    def close(self, request, pk=None):
        sr = RequestService.close_request(request_id=int(pk), actor=identify(request))
        return self._detail(sr)

    @extend_schema(tags=["Requests"], request=None, responses={201: UploadCapabilitySerializer})
    @action(detail=True, methods=["post"], url_path="doc-link")
    def doc_link(self, request, pk=None):
        capability = RequestService.mint_upload_token(request_id=int(pk), actor=identify(request))
        return Response(UploadCapabilitySerializer(capability).data, status=status.HTTP_201_CREATED)

    # ----------------------------
    # Escalation lane
    # ----------------------------
    @extend_schema(tags=["Support"], request=None, responses={200: ServiceRequestDetailSerializer})
    @action(detail=True, methods=["post"])
    def cancel(self, request, pk=None):
        sr = SupportService.escalate_cancel(request_id=int(pk), actor=identify(request))
        return self._detail(sr)

    @extend_schema(tags=["Support"], request=ChangeRequestSerializer, responses={200: ServiceRequestDetailSerializer})
    @action(detail=True, methods=["post"])
    def change(self, request, pk=None):
        ser = ChangeRequestSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        sr = SupportService.escalate_change(
            request_id=int(pk),
            actor=identify(request),
            changes=ChangeSet.from_mapping(ser.validated_data),
            note=ser.validated_data["note"],
        )
        return self._detail(sr)

    @extend_schema(tags=["Support"], request=SupportCancelSerializer, responses={200: ServiceRequestDetailSerializer})
    @action(detail=True, methods=["post"], url_path="support/cancel")
    def support_cancel(self, request, pk=None):
        ser = SupportCancelSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        sr = SupportService.resolve_cancel(
            request_id=int(pk),
            actor=identify(request),
            approve=ser.validated_data["approve"],
        )
        return self._detail(sr)

    @extend_schema(tags=["Support"], request=SupportChangeSerializer, responses={200: ServiceRequestDetailSerializer})
    @action(detail=True, methods=["post"], url_path="support/change")
    def support_change(self, request, pk=None):
        ser = SupportChangeSerializer(data=request.data)
        ser.is_valid(raise_exception=True)

        sr = SupportService.resolve_change(
            request_id=int(pk),
            actor=identify(request),
            approve=ser.validated_data["approve"],
            changes=ChangeSet.from_mapping(ser.validated_data),
        )
        return self._detail(sr)
