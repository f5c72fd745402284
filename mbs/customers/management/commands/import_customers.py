"""
Management command to import customers of one store from a Shift_JIS CSV file
Usage: python manage.py import_customers --csv-file customers.csv --store 今里店
"""
import os
from django.core.management.base import BaseCommand, CommandError
from django.conf import settings

from mbs.customers.csv_import import (
    decode_csv, validate_customer_csv, import_customer_rows, CsvImportError,
)
from mbs.customers.models import Customer
from mbs.stores.models import Store


class Command(BaseCommand):
    help = "Imports customers of a store from an 8-column Shift_JIS CSV file"

    def add_arguments(self, parser):
        parser.add_argument(
            '--csv-file',
            type=str,
            required=True,
            help='Path to the CSV file (relative paths are resolved from the project root)',
        )
        parser.add_argument(
            '--store',
            type=str,
            required=True,
            help='Store name or store id the customers belong to',
        )
        parser.add_argument(
            '--encoding',
            type=str,
            default=None,
            help=f'File encoding (default: {settings.MBS_CSV_ENCODING})',
        )
        parser.add_argument(
            '--dry-run',
            action='store_true',
            help='Validate the file without writing anything',
        )

    def get_store(self, value):
        store = Store.objects.filter(name=value).first()
        if store is None and value.isdigit():
            store = Store.objects.filter(pk=int(value)).first()
        if store is None:
            raise CommandError(f"Store not found: {value}")
        return store

    def handle(self, *args, **options):
        csv_file = options['csv_file']
        if not os.path.isabs(csv_file):
            csv_file = os.path.normpath(os.path.join(settings.BASE_DIR, csv_file))

        store = self.get_store(options['store'])

        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(self.style.SUCCESS("IMPORTING CUSTOMERS FROM CSV"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(f"CSV File: {csv_file}")
        self.stdout.write(f"Store: {store.name}")

        if not os.path.exists(csv_file):
            raise CommandError(f"CSV file not found at {csv_file}")

        with open(csv_file, 'rb') as f:
            raw = f.read()

        try:
            table = decode_csv(raw, options['encoding'])
        except CsvImportError as e:
            raise CommandError(e.message)

        validation = validate_customer_csv(table, store.name)
        for warning in validation.warnings:
            self.stdout.write(self.style.WARNING(f"  ! {warning}"))
        for error in validation.errors:
            self.stdout.write(self.style.ERROR(f"  ✗ {error}"))

        if not validation.is_valid:
            raise CommandError(f"{len(validation.errors)} error(s) found, nothing was imported")

        if options['dry_run']:
            self.stdout.write(self.style.SUCCESS(f"Dry run: {len(validation.rows)} row(s) are valid, nothing was written"))
            return

        result = import_customer_rows(store, validation.rows)
        for warning in result.warnings:
            self.stdout.write(self.style.WARNING(f"  ⊘ {warning}"))

        self.stdout.write(self.style.SUCCESS("\n================================================================================"))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(f"Customers Created: {result.created_count}")
        self.stdout.write(f"Customers Updated: {result.updated_count}")
        self.stdout.write(f"Customers Skipped (other store): {result.skipped_count}")
        self.stdout.write(f"Total Customers in Store: {Customer.objects.active().filter(store=store).count()}")
        self.stdout.write(self.style.SUCCESS("================================================================================"))
