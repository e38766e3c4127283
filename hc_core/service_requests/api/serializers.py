# hc_core/service_requests/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hc_core.catalog.models import ServiceItem
from hc_core.patients.api.serializers import (
    PatientFragmentSerializer,
    PatientSummarySerializer,
    RequesterLinkSerializer,
)
from hc_core.service_requests.models import RequestLogEntry, RequestStatus, ServiceRequest, SupportType


# -------------------------
# Read models
# -------------------------

class ServiceItemSummarySerializer(serializers.ModelSerializer):
    category_title = serializers.CharField(source="category.title", read_only=True)

    class Meta:
        model = ServiceItem
        fields = ["id", "title", "price", "category_title"]
        read_only_fields = fields


class RequestLogEntrySerializer(serializers.ModelSerializer):
    actor_user_id = serializers.IntegerField(read_only=True, allow_null=True)
    actor_requester_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = RequestLogEntry
        fields = ["id", "action", "actor_user_id", "actor_requester_id", "payload", "created_at"]
        read_only_fields = fields


class ServiceRequestSerializer(serializers.ModelSerializer):
    service_item = ServiceItemSummarySerializer(read_only=True)
    patient = PatientSummarySerializer(read_only=True)
    requester = RequesterLinkSerializer(read_only=True)

    assigned_caregiver_id = serializers.IntegerField(read_only=True, allow_null=True)
    assigned_expert_id = serializers.IntegerField(read_only=True, allow_null=True)
    current_owner_id = serializers.IntegerField(read_only=True, allow_null=True)
    last_action_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = ServiceRequest
        fields = [
            "id",
            "status",
            "previous_status",
            "support_type",
            "service_item",
            "patient",
            "requester",
            "city",
            "time",
            "notes",
            "assigned_caregiver_id",
            "assigned_expert_id",
            "current_owner_id",
            "last_action_by_id",
            "doc_upload_expires_at",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class ServiceRequestDetailSerializer(ServiceRequestSerializer):
    logs = serializers.SerializerMethodField()

    class Meta(ServiceRequestSerializer.Meta):
        fields = [*ServiceRequestSerializer.Meta.fields, "logs"]
        read_only_fields = fields

    def get_logs(self, obj) -> list[dict]:
        qs = obj.logs.order_by("created_at", "id")
        return RequestLogEntrySerializer(qs, many=True).data


class UploadCapabilitySerializer(serializers.Serializer):
    token = serializers.CharField()
    expires_at = serializers.DateTimeField()
    patient_id = serializers.IntegerField()


# -------------------------
# Inputs
# -------------------------

class RequestCreateSerializer(serializers.Serializer):
    phone = serializers.CharField(required=False, allow_blank=True, max_length=32)
    patient_id = serializers.IntegerField(required=False, allow_null=True)
    patient = PatientFragmentSerializer(required=False, allow_null=True)
    service_item_id = serializers.IntegerField(required=False, allow_null=True)
    city = serializers.CharField(required=False, allow_blank=True, max_length=128, default="")
    time = serializers.CharField(required=False, allow_blank=True, max_length=128, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")


class RequestUpdateSerializer(serializers.Serializer):
    service_item_id = serializers.IntegerField(required=False)
    patient_id = serializers.IntegerField(required=False)
    city = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    time = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    status = serializers.ChoiceField(choices=RequestStatus.choices, required=False)
    assigned_caregiver_id = serializers.IntegerField(required=False, allow_null=True)
    assigned_expert_id = serializers.IntegerField(required=False, allow_null=True)
    current_owner_id = serializers.IntegerField(required=False, allow_null=True)
    support_type = serializers.ChoiceField(choices=SupportType.choices, required=False, allow_null=True)


class AssignCaregiverSerializer(serializers.Serializer):
    caregiver_id = serializers.IntegerField()


class ChangeFieldsSerializer(serializers.Serializer):
    service_item_id = serializers.IntegerField(required=False)
    city = serializers.CharField(required=False, allow_blank=True, max_length=128)
    time = serializers.CharField(required=False, allow_blank=True, max_length=128)
    notes = serializers.CharField(required=False, allow_blank=True)


class ChangeRequestSerializer(ChangeFieldsSerializer):
    note = serializers.CharField(required=False, allow_blank=True, default="")


class SupportCancelSerializer(serializers.Serializer):
    approve = serializers.BooleanField(required=False, default=True)


class SupportChangeSerializer(ChangeFieldsSerializer):
    approve = serializers.BooleanField(required=False, default=True)
