"""
Management command to rebuild customer statistics
Usage: python manage.py recalculate_statistics [--store 今里店]
"""
from django.core.management.base import BaseCommand, CommandError

from mbs.reports.services import recalculate_statistics
from mbs.stores.models import Store


class Command(BaseCommand):
    help = "Recalculates average lead time and total sales per customer"

    def add_arguments(self, parser):
        parser.add_argument(
            '--store',
            type=str,
            default=None,
            help='Store name or store id (default: every store)',
        )

    def get_stores(self, value):
        if value is None:
            return list(Store.objects.order_by('id'))
        store = Store.objects.filter(name=value).first()
        if store is None and value.isdigit():
            store = Store.objects.filter(pk=int(value)).first()
        if store is None:
            raise CommandError(f"Store not found: {value}")
        return [store]

    def handle(self, *args, **options):
        stores = self.get_stores(options['store'])

        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(self.style.SUCCESS("RECALCULATING CUSTOMER STATISTICS"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))

        total = 0
        for store in stores:
            count = recalculate_statistics(store)
            total += count
            self.stdout.write(self.style.SUCCESS(f"  ✓ {store.name}: {count} customer(s)"))

        self.stdout.write(self.style.SUCCESS("\n================================================================================"))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(f"Stores Processed: {len(stores)}")
        self.stdout.write(f"Customers Recalculated: {total}")
        self.stdout.write(self.style.SUCCESS("================================================================================"))
