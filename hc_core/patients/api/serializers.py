# hc_core/patients/api/serializers.py
from __future__ import annotations

from rest_framework import serializers

from hc_core.patients.models import Gender, Patient, RequesterLink, VerificationStatus


class PatientFragmentSerializer(serializers.Serializer):
    """Demographics accepted at intake / admission."""
    national_code = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=64)
    first_name = serializers.CharField(required=False, allow_blank=True, max_length=128, default="")
    last_name = serializers.CharField(required=False, allow_blank=True, max_length=128, default="")
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=150)
    gender = serializers.ChoiceField(choices=Gender.choices, required=False, allow_blank=True, default="")


class PatientAdmitSerializer(PatientFragmentSerializer):
    national_code = serializers.CharField(max_length=64)


class PatientUpdateSerializer(serializers.Serializer):
    national_code = serializers.CharField(required=False, max_length=64)
    first_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    last_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=128)
    full_name = serializers.CharField(required=False, allow_blank=True, allow_null=True, max_length=255)
    age = serializers.IntegerField(required=False, allow_null=True, min_value=0, max_value=150)
    gender = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    birth_date = serializers.DateField(required=False, allow_null=True)
    medical_notes = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    conditions = serializers.CharField(required=False, allow_blank=True, allow_null=True)
    verification_status = serializers.ChoiceField(choices=VerificationStatus.choices, required=False)


class PatientSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = [
            "id",
            "national_code",
            "is_placeholder_code",
            "full_name",
            "age",
            "gender",
            "verification_status",
        ]
        read_only_fields = fields


class PatientSerializer(serializers.ModelSerializer):
    class Meta:
        model = Patient
        fields = [
            "id",
            "national_code",
            "is_placeholder_code",
            "first_name",
            "last_name",
            "full_name",
            "age",
            "gender",
            "birth_date",
            "medical_notes",
            "conditions",
            "verification_status",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields


class RequesterLinkSerializer(serializers.ModelSerializer):
    patient_id = serializers.IntegerField(read_only=True)
    user_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = RequesterLink
        fields = [
            "id",
            "patient_id",
            "user_id",
            "phone",
            "is_primary",
            "is_secondary",
            "history_access_granted",
            "total_requests",
            "last_request_at",
            "created_at",
        ]
        read_only_fields = fields


class RequesterLinkUpdateSerializer(serializers.Serializer):
    is_secondary = serializers.BooleanField(required=False)
    history_access_granted = serializers.BooleanField(required=False)
