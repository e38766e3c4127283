# hc_core/documents/admin.py
from django.contrib import admin

from hc_core.documents.models import PatientDocument


@admin.register(PatientDocument)
class PatientDocumentAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "patient",
        "type",
        "status",
        "mime_type",
        "size",
        "is_compressed",
        "verified_by",
        "created_at",
    )
    list_filter = ("type", "status", "is_compressed")
    search_fields = ("patient__national_code", "patient__full_name", "title")
    readonly_fields = ("created_at", "updated_at", "size", "original_size")
    exclude = ("content",)
    list_select_related = ("patient", "verified_by")
    ordering = ("-created_at",)
