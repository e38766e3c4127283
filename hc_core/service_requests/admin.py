# hc_core/service_requests/admin.py
from django.contrib import admin

from hc_core.service_requests.models import RequestLogEntry, ServiceRequest


class RequestLogEntryInline(admin.TabularInline):
    model = RequestLogEntry
    extra = 0
    can_delete = False
    fields = ("action", "actor_user", "actor_requester", "payload", "created_at")
    readonly_fields = fields

    def has_add_permission(self, request, obj=None):
        return False


@admin.register(ServiceRequest)
class ServiceRequestAdmin(admin.ModelAdmin):
    list_display = (
        "id",
        "status",
        "support_type",
        "patient",
        "service_item",
        "assigned_caregiver",
        "updated_at",
    )
    list_filter = ("status", "support_type")
    search_fields = ("patient__national_code", "patient__full_name", "requester__phone", "city")
    readonly_fields = ("created_at", "updated_at", "doc_upload_token", "doc_upload_expires_at")
    list_select_related = ("patient", "service_item", "assigned_caregiver")
    ordering = ("-updated_at",)
    inlines = [RequestLogEntryInline]


@admin.register(RequestLogEntry)
class RequestLogEntryAdmin(admin.ModelAdmin):
    list_display = ("id", "request", "action", "actor_user", "actor_requester", "created_at")
    list_filter = ("action",)
    search_fields = ("request__id",)
    readonly_fields = ("request", "action", "actor_user", "actor_requester", "payload", "created_at")
    ordering = ("-created_at",)

    def has_change_permission(self, request, obj=None):
        return False

    def has_delete_permission(self, request, obj=None):
        return False
