# hc_core/catalog/admin.py
from django.contrib import admin

from hc_core.catalog.models import ServiceCategory, ServiceItem


@admin.register(ServiceCategory)
class ServiceCategoryAdmin(admin.ModelAdmin):
    list_display = ("title", "sort_order", "is_active")
    list_filter = ("is_active",)
    search_fields = ("title",)
    ordering = ("sort_order",)


@admin.register(ServiceItem)
class ServiceItemAdmin(admin.ModelAdmin):
    list_display = ("title", "category", "price", "is_active")
    list_filter = ("is_active", "category")
    search_fields = ("title",)
    list_select_related = ("category",)
