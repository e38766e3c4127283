# hc_core/iam/api/users.py

from __future__ import annotations

from django.contrib.auth import get_user_model
from drf_spectacular.types import OpenApiTypes
from drf_spectacular.utils import OpenApiParameter, extend_schema
from rest_framework import viewsets

from hc_core.common.api.exceptions import ValidationFailure
from hc_core.common.api.pagination import paginate
from hc_core.common.permissions import MatrixPermission, Operation, Resource
from hc_core.iam.api.serializers import UserSerializer
from hc_core.iam.identity import ROLE_VALUES


class UserViewSet(viewsets.GenericViewSet):
    """
    Staff directory (used to pick an assignee, e.g. ?role=CARE_GIVER).
    """
    permission_classes = [MatrixPermission]
    matrix_resource = Resource.USER
    matrix_actions = {"list": Operation.LIST}

    serializer_class = UserSerializer
    queryset = get_user_model().objects.none()

    @extend_schema(
        tags=["IAM"],
        responses={200: UserSerializer(many=True)},
        parameters=[
            OpenApiParameter(
                name="role",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Only users holding this role (ADMIN, EXPERT, SUPPORT, CARE_GIVER, USER).",
            ),
        ],
    )
    def list(self, request):
        User = get_user_model()
        qs = User.objects.select_related("hc_profile").prefetch_related("groups").order_by("-date_joined")

        role = (request.query_params.get("role") or "").strip()
        if role:
            if role not in ROLE_VALUES:
                raise ValidationFailure({"role": f"Unknown role '{role}'."})
            qs = qs.filter(groups__name=role).distinct()

        return paginate(request, qs, UserSerializer)
