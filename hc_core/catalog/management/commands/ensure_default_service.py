# hc_core/catalog/management/commands/ensure_default_service.py

from django.core.management.base import BaseCommand

from hc_core.catalog.services import ensure_default_service_item


class Command(BaseCommand):
    help = "Ensure the fallback service category/item exists (idempotent)."

    def handle(self, *args, **options):
        item = ensure_default_service_item()
        self.stdout.write(self.style.SUCCESS(f"Default service item ensured: id={item.id} ({item.title})"))
