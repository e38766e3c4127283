# hc_core/iam/admin.py
from django.contrib import admin

from hc_core.iam.models import UserProfile


@admin.register(UserProfile)
class UserProfileAdmin(admin.ModelAdmin):
    list_display = ("user", "phone", "national_code", "created_at")
    search_fields = ("phone", "national_code", "user__username")
    readonly_fields = ("created_at", "updated_at")
    ordering = ("-created_at",)
    list_select_related = ("user",)
