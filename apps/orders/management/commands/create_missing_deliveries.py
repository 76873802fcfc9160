from django.core.management.base import BaseCommand

from apps.orders.services import materialize_deliveries


class Command(BaseCommand):
    help = "Create a pending delivery for every paid order that does not have one yet."

    def handle(self, *args, **options):
        count = materialize_deliveries()
        self.stdout.write(self.style.SUCCESS(f"Created {count} delivery record(s)."))
