# hc_core/catalog/models.py
from django.db import models

from hc_core.common.models import TimeStampedModel


class ServiceCategory(TimeStampedModel):
    title = models.CharField(max_length=255)
    sort_order = models.IntegerField(default=0)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "catalog_service_category"
        ordering = ("sort_order", "id")

    def __str__(self) -> str:
        return self.title


class ServiceItem(TimeStampedModel):
    category = models.ForeignKey(ServiceCategory, on_delete=models.PROTECT, related_name="items")
    title = models.CharField(max_length=255)
    price = models.DecimalField(max_digits=12, decimal_places=2, null=True, blank=True)
    is_active = models.BooleanField(default=True)

    class Meta:
        db_table = "catalog_service_item"
        indexes = [
            models.Index(fields=["category", "title"], name="ix_service_item_cat_title"),
        ]

    def __str__(self) -> str:
        return self.title
