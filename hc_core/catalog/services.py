# hc_core/catalog/services.py
from __future__ import annotations

import logging
from typing import Optional

from django.conf import settings
from django.db import transaction

from hc_core.catalog.models import ServiceCategory, ServiceItem

logger = logging.getLogger(__name__)


@transaction.atomic
def ensure_default_service_item() -> ServiceItem:
    """
    Idempotent find-or-create of the fallback category/item used when intake
    does not name a service. Titles come from settings.
    """
    category = ServiceCategory.objects.filter(title=settings.DEFAULT_SERVICE_CATEGORY_TITLE).order_by("id").first()
    if category is None:
        category = ServiceCategory.objects.create(
            title=settings.DEFAULT_SERVICE_CATEGORY_TITLE,
            sort_order=0,
            is_active=True,
        )
        logger.info("Created default service category id=%s", category.id)

    item = ServiceItem.objects.filter(category=category, title=settings.DEFAULT_SERVICE_ITEM_TITLE).order_by("id").first()
    if item is None:
        item = ServiceItem.objects.create(
            category=category,
            title=settings.DEFAULT_SERVICE_ITEM_TITLE,
            is_active=True,
        )
        logger.info("Created default service item id=%s", item.id)

    return item


def resolve_service_item(service_item_id: Optional[int]) -> ServiceItem:
    if service_item_id:
        item = ServiceItem.objects.filter(id=service_item_id).first()
        if item is not None:
            return item
    return ensure_default_service_item()
