# hc_core/catalog/tests/test_default_service.py
from io import StringIO

import pytest
from django.contrib.auth.models import Group
from django.core.management import call_command

from hc_core.catalog.models import ServiceCategory, ServiceItem
from hc_core.catalog.services import ensure_default_service_item, resolve_service_item
from hc_core.iam.identity import Role

pytestmark = pytest.mark.django_db


def test_default_item_is_idempotent(settings):
    first = ensure_default_service_item()
    second = ensure_default_service_item()

    assert first.id == second.id
    assert first.title == settings.DEFAULT_SERVICE_ITEM_TITLE
    assert ServiceCategory.objects.count() == 1
    assert ServiceItem.objects.count() == 1


def test_unknown_item_falls_back_to_default():
    default = ensure_default_service_item()
    assert resolve_service_item(None).id == default.id
    assert resolve_service_item(987654).id == default.id


def test_named_item_is_used():
    category = ServiceCategory.objects.create(title="Nursing", sort_order=1, is_active=True)
    item = ServiceItem.objects.create(category=category, title="Wound care", is_active=True)
    assert resolve_service_item(item.id).id == item.id


def test_management_commands():
    out = StringIO()
    call_command("ensure_default_service", stdout=out)
    call_command("ensure_default_service", stdout=out)
    assert ServiceItem.objects.count() == 1
    assert "Default service item ensured" in out.getvalue()

    call_command("ensure_roles", stdout=StringIO())
    call_command("ensure_roles", stdout=StringIO())
    assert set(Group.objects.values_list("name", flat=True)) >= {r.value for r in Role}
