"""
Management command to add the production stores
Usage: python manage.py seed_stores
"""
from django.core.management.base import BaseCommand

from mbs.stores.models import Store

STORE_NAMES = ['今里店', '深江橋店', '緑橋本店']


class Command(BaseCommand):
    help = "Adds the production stores to the database"

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(self.style.SUCCESS("ADDING STORES"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))

        created_count = 0
        skipped_count = 0
        for name in STORE_NAMES:
            store, created = Store.objects.get_or_create(name=name)
            if created:
                created_count += 1
                self.stdout.write(self.style.SUCCESS(f"  ✓ Created: {name}"))
            else:
                skipped_count += 1
                self.stdout.write(self.style.WARNING(f"  ⊘ Skipped (already exists): {name}"))

        self.stdout.write(self.style.SUCCESS("\n================================================================================"))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(f"Stores Created: {created_count}")
        self.stdout.write(f"Stores Skipped (already exist): {skipped_count}")
        self.stdout.write(f"Total Stores in Database: {Store.objects.count()}")
        self.stdout.write(self.style.SUCCESS("================================================================================"))
