# hc_core/audit/api/views.py
from __future__ import annotations

from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets

from hc_core.audit.api.serializers import AuditEventSerializer
from hc_core.audit.models import AuditEvent
from hc_core.audit.selectors import list_audit_events
from hc_core.common.api.exceptions import ValidationFailure
from hc_core.common.api.pagination import paginate
from hc_core.common.permissions import MatrixPermission, Operation, Resource


def _int_param(request, name: str) -> int | None:
    raw = request.query_params.get(name)
    if raw is None or raw == "":
        return None
    try:
        return int(raw)
    except (TypeError, ValueError):
        raise ValidationFailure({name: "Invalid value (int expected)."})


class AuditEventViewSet(viewsets.GenericViewSet):
    """
    List audit events (ADMIN only).
    """
    permission_classes = [MatrixPermission]
    matrix_resource = Resource.AUDIT
    matrix_actions = {"list": Operation.LIST}

    serializer_class = AuditEventSerializer
    queryset = AuditEvent.objects.none()

    @extend_schema(
        tags=["Audit"],
        responses={200: AuditEventSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="entity_type",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity type (e.g. Patient, RequesterLink, PatientDocument).",
            ),
            OpenApiParameter(
                name="entity_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by entity id.",
            ),
            OpenApiParameter(
                name="event_code",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by event code (e.g. patient.updated, document.status_changed).",
            ),
            OpenApiParameter(
                name="actor_user_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Filter by actor user id.",
            ),
            OpenApiParameter(
                name="patient_id",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Everything recorded about one patient (the patient row, its links and documents).",
            ),
        ],
    )
    def list(self, request):
        qs = list_audit_events(
            entity_type=request.query_params.get("entity_type") or None,
            entity_id=_int_param(request, "entity_id"),
            event_code=request.query_params.get("event_code") or None,
            actor_user_id=_int_param(request, "actor_user_id"),
            patient_id=_int_param(request, "patient_id"),
        )
        return paginate(request, qs, AuditEventSerializer)
