# hc_core/documents/api/serializers.py
from __future__ import annotations

import base64
import binascii

from rest_framework import serializers

from hc_core.documents.models import DocumentStatus, DocumentType, PatientDocument
from hc_core.documents.services import DocumentMetadata


class DocumentSerializer(serializers.ModelSerializer):
    """Metadata only."""
    patient_id = serializers.IntegerField(read_only=True)
    uploaded_by_requester_id = serializers.IntegerField(read_only=True, allow_null=True)
    verified_by_id = serializers.IntegerField(read_only=True, allow_null=True)

    class Meta:
        model = PatientDocument
        fields = [
            "id",
            "patient_id",
            "type",
            "title",
            "doctor_name",
            "visit_date",
            "visit_reason",
            "visit_location",
            "notes",
            "mime_type",
            "size",
            "original_size",
            "is_compressed",
            "status",
            "uploaded_by_requester_id",
            "verified_by_id",
            "created_at",
        ]
        read_only_fields = fields


class DocumentDetailSerializer(DocumentSerializer):
    data = serializers.SerializerMethodField()

    class Meta(DocumentSerializer.Meta):
        fields = [*DocumentSerializer.Meta.fields, "data"]
        read_only_fields = fields

    def get_data(self, obj) -> str:
        return base64.b64encode(bytes(obj.content or b"")).decode("ascii")


class DocumentSubmitSerializer(serializers.Serializer):
    type = serializers.ChoiceField(choices=DocumentType.choices)
    mime_type = serializers.CharField(max_length=128)
    data = serializers.CharField(help_text="Base64 content (a data: URL prefix is accepted).")
    upload_token = serializers.CharField(required=False, allow_blank=True, max_length=64)

    title = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
    doctor_name = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
    visit_date = serializers.DateField(required=False, allow_null=True, default=None)
    visit_reason = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
    visit_location = serializers.CharField(required=False, allow_blank=True, max_length=255, default="")
    notes = serializers.CharField(required=False, allow_blank=True, default="")
    is_compressed = serializers.BooleanField(required=False, default=False)
    original_size = serializers.IntegerField(required=False, allow_null=True, min_value=0, default=None)

    def validate_data(self, value: str) -> bytes:
        raw = value.strip()
        if raw.startswith("data:") and "," in raw:
            raw = raw.split(",", 1)[1]
        try:
            content = base64.b64decode(raw, validate=True)
        except (binascii.Error, ValueError):
            raise serializers.ValidationError("Invalid base64 content.")
        if not content:
            raise serializers.ValidationError("Document content is empty.")
        return content

    def to_metadata(self) -> DocumentMetadata:
        v = self.validated_data
        return DocumentMetadata(
            mime_type=v["mime_type"],
            title=v["title"],
            doctor_name=v["doctor_name"],
            visit_date=v["visit_date"],
            visit_reason=v["visit_reason"],
            visit_location=v["visit_location"],
            notes=v["notes"],
            is_compressed=v["is_compressed"],
            original_size=v["original_size"],
        )


class DocumentStatusSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=DocumentStatus.choices)
