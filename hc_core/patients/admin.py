# hc_core/patients/admin.py
from django.contrib import admin

from hc_core.patients.models import Patient, RequesterLink


class RequesterLinkInline(admin.TabularInline):
    model = RequesterLink
    extra = 0
    fields = ("phone", "user", "is_primary", "is_secondary", "history_access_granted", "total_requests")
    readonly_fields = ("total_requests",)


@admin.register(Patient)
class PatientAdmin(admin.ModelAdmin):
    list_display = (
        "full_name",
        "national_code",
        "is_placeholder_code",
        "verification_status",
        "created_at",
    )
    list_filter = ("verification_status", "is_placeholder_code", "gender")
    search_fields = ("full_name", "first_name", "last_name", "national_code")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at",)
    inlines = [RequesterLinkInline]


@admin.register(RequesterLink)
class RequesterLinkAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "patient",
        "phone",
        "user",
        "is_primary",
        "is_secondary",
        "history_access_granted",
        "total_requests",
        "last_request_at",
    )
    list_filter = ("is_primary", "is_secondary", "history_access_granted")
    search_fields = ("phone", "patient__national_code", "patient__full_name")
    readonly_fields = ("created_at", "updated_at")
    list_select_related = ("patient", "user")
