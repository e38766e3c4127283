# hc_core/iam/api/me.py

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from hc_core.iam.api.serializers import ActorSerializer
from hc_core.iam.identity import identify


class MeView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["IAM"], responses={200: ActorSerializer})
    def get(self, request):
        """
        The resolved actor: user id, phone and roles.
        """
        actor = identify(request)
        return Response(ActorSerializer(actor).data, status=status.HTTP_200_OK)
