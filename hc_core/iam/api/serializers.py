# hc_core/iam/api/serializers.py
from __future__ import annotations

from django.contrib.auth import get_user_model
from rest_framework import serializers

from hc_core.iam.identity import actor_for_user


class ActorSerializer(serializers.Serializer):
    id = serializers.IntegerField(source="user_id", allow_null=True)
    phone = serializers.CharField(allow_null=True)
    roles = serializers.SerializerMethodField()
    is_guest = serializers.BooleanField()

    def get_roles(self, obj) -> list[str]:
        return sorted(obj.roles)


class UserSerializer(serializers.ModelSerializer):
    phone = serializers.SerializerMethodField()
    roles = serializers.SerializerMethodField()

    class Meta:
        model = get_user_model()
        fields = ["id", "username", "first_name", "last_name", "phone", "roles", "is_active"]
        read_only_fields = fields

    def get_phone(self, obj) -> str | None:
        return actor_for_user(obj).phone

    def get_roles(self, obj) -> list[str]:
        return sorted(actor_for_user(obj).roles)
