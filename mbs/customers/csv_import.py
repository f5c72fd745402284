"""
Customer CSV import and export.

The sheet has eight fixed columns and is saved from Excel, so it arrives in
Shift_JIS (the Windows ``cp932`` flavour). Validation walks the whole file and
collects every problem before anything is written; a file with any error is
rejected as a whole.
"""
import codecs
import csv
import io
import logging
import re
from dataclasses import dataclass, field

from django.conf import settings
from django.db import transaction

from mbs.core.exceptions import ValidationFailed
from .models import Customer

logger = logging.getLogger(__name__)

CSV_HEADERS = ['顧客ID', '店舗名', '顧客名', '担当者名', '住所', '電話番号', '配送条件', '備考']
REQUIRED_HEADERS = ['顧客ID', '店舗名', '顧客名']
COLUMN_COUNT = len(CSV_HEADERS)
MAX_NAME_LENGTH = 100
CUSTOMER_ID_PATTERN = re.compile(r'^[A-Za-z0-9_-]{1,20}$')
PHONE_PATTERN = re.compile(r'^[0-9+()\- ]+$')
# Ids that would be shadowed by the fixed customer routes
RESERVED_CUSTOMER_IDS = {'all', 'import', 'export'}
# Bounded columns other than the customer name, checked against the model
LIMITED_COLUMNS = [
    ('contact_person', 'contact person'),
    ('address', 'address'),
    ('phone', 'phone number'),
    ('delivery_condition', 'delivery condition'),
]


class CsvImportError(ValidationFailed):
    default_message = 'The CSV file could not be imported'

    def get_payload(self):
        payload = super().get_payload()
        payload['status'] = 'error'
        return payload


@dataclass
class CustomerRow:
    line: int
    customer_id: str
    store_name: str
    name: str
    contact_person: str
    address: str
    phone: str
    delivery_condition: str
    note: str

    def field_values(self):
        return {
            'name': self.name,
            'contact_person': self.contact_person,
            'address': self.address,
            'phone': self.phone,
            'delivery_condition': self.delivery_condition,
            'note': self.note,
        }


@dataclass
class CsvValidationResult:
    rows: list = field(default_factory=list)
    errors: list = field(default_factory=list)
    warnings: list = field(default_factory=list)

    @property
    def is_valid(self):
        return not self.errors


@dataclass
class ImportResult:
    created_count: int = 0
    updated_count: int = 0
    skipped_count: int = 0
    warnings: list = field(default_factory=list)


def decode_csv(raw, encoding=None):
    """Decode the uploaded bytes and split them into rows of cells"""
    encoding = encoding or settings.MBS_CSV_ENCODING
    try:
        if raw.startswith(codecs.BOM_UTF8):
            text = raw.decode('utf-8-sig')
        else:
            text = raw.decode(encoding)
    except (UnicodeDecodeError, LookupError):
        raise CsvImportError(f'The file could not be read as {encoding}. Save the CSV in Shift_JIS and try again.')
    return list(csv.reader(io.StringIO(text, newline='')))


def _is_blank(row):
    return not any(cell.strip() for cell in row)


def validate_header(header):
    errors = []
    header = [cell.strip().lstrip('\ufeff') for cell in header]
    if len(header) != COLUMN_COUNT:
        errors.append(f'The header must have {COLUMN_COUNT} columns, found {len(header)}')
    for column in REQUIRED_HEADERS:
        if column not in header:
            errors.append(f'Missing required column: {column}')
    if not errors and header != CSV_HEADERS:
        for index, (found, expected) in enumerate(zip(header, CSV_HEADERS), start=1):
            if found != expected:
                errors.append(f'Column {index} must be "{expected}", found "{found}"')
    return errors


def validate_customer_csv(table, store_name):
    """
    Check the parsed CSV against the import format.

    Line numbers count the header as line 1. Blank lines are ignored.
    """
    result = CsvValidationResult()
    if not table or all(_is_blank(row) for row in table):
        result.errors.append('CSV file is empty')
        return result

    header_errors = validate_header(table[0])
    if header_errors:
        result.errors.extend(header_errors)
        return result

    data = [(line, row) for line, row in enumerate(table[1:], start=2) if not _is_blank(row)]
    if not data:
        result.errors.append('CSV file has no data rows (header only)')
        return result

    seen_ids = {}
    for line, row in data:
        cells = [cell.strip() for cell in row]
        if len(cells) != COLUMN_COUNT:
            result.errors.append(f'Line {line}: expected {COLUMN_COUNT} columns, found {len(cells)}')
            continue

        customer_id, row_store, name, contact_person, address, phone, delivery_condition, note = cells

        if row_store != store_name:
            result.errors.append(f'Line {line}: store name "{row_store}" does not match the selected store "{store_name}"')

        if not name:
            result.errors.append(f'Line {line}: customer name is required')
        elif len(name) > MAX_NAME_LENGTH:
            result.errors.append(f'Line {line}: customer name must be at most {MAX_NAME_LENGTH} characters')

        if not customer_id:
            result.warnings.append(f'Line {line}: customer ID is blank, a new ID will be assigned')
        elif not CUSTOMER_ID_PATTERN.match(customer_id):
            result.errors.append(f'Line {line}: invalid customer ID "{customer_id}"')
        elif customer_id.lower() in RESERVED_CUSTOMER_IDS:
            result.errors.append(f'Line {line}: customer ID "{customer_id}" is reserved')
        elif customer_id in seen_ids:
            result.errors.append(
                f'Line {line}: duplicate customer ID "{customer_id}" (first seen on line {seen_ids[customer_id]})'
            )
        else:
            seen_ids[customer_id] = line

        if phone and not PHONE_PATTERN.match(phone):
            result.warnings.append(f'Line {line}: phone number "{phone}" looks invalid')

        row_data = CustomerRow(
            line=line,
            customer_id=customer_id,
            store_name=row_store,
            name=name,
            contact_person=contact_person,
            address=address,
            phone=phone,
            delivery_condition=delivery_condition,
            note=note,
        )
        for column, label in LIMITED_COLUMNS:
            limit = Customer._meta.get_field(column).max_length
            if len(getattr(row_data, column)) > limit:
                result.errors.append(f'Line {line}: {label} must be at most {limit} characters')

        result.rows.append(row_data)

    return result


def import_customer_rows(store, rows):
    """
    Write validated rows in one transaction.

    Blank ids become new customers, ids of this store's customers are updated
    (and restored when soft-deleted), ids owned by another store are skipped.
    """
    result = ImportResult()
    with transaction.atomic():
        # Rows with explicit ids first so generated ids never collide with them
        for row in sorted(rows, key=lambda r: not r.customer_id):
            values = row.field_values()
            if not row.customer_id:
                Customer.objects.create(id=Customer.next_id(), store=store, **values)
                result.created_count += 1
                continue

            existing = Customer.objects.filter(pk=row.customer_id).first()
            if existing is None:
                Customer.objects.create(id=row.customer_id, store=store, **values)
                result.created_count += 1
            elif existing.store_id != store.id:
                result.skipped_count += 1
                result.warnings.append(
                    f'Line {row.line}: customer ID "{row.customer_id}" belongs to another store and was skipped'
                )
            else:
                for name, value in values.items():
                    setattr(existing, name, value)
                existing.is_deleted = False
                existing.deleted_at = None
                existing.save()
                result.updated_count += 1
    return result


def import_customers_csv(store, raw, encoding=None):
    """Decode, validate and import an uploaded customer CSV for ``store``"""
    table = decode_csv(raw, encoding)
    validation = validate_customer_csv(table, store.name)
    if not validation.is_valid:
        logger.warning(
            f"Customer CSV rejected for store '{store.name}': {len(validation.errors)} errors",
            extra={'data': {'errors': validation.errors}},
        )
        raise CsvImportError(
            f'The CSV file has {len(validation.errors)} error(s)',
            errors=validation.errors,
            warnings=validation.warnings,
        )

    result = import_customer_rows(store, validation.rows)
    result.warnings = validation.warnings + result.warnings
    logger.info(
        f"Imported customers for store '{store.name}': {result.created_count} created, "
        f"{result.updated_count} updated, {result.skipped_count} skipped"
    )
    return result


def export_customers_csv(customers, encoding=None):
    """The customers in the import format, encoded for Excel"""
    encoding = encoding or settings.MBS_CSV_ENCODING
    buffer = io.StringIO()
    writer = csv.writer(buffer, lineterminator='\r\n')
    writer.writerow(CSV_HEADERS)
    for customer in customers:
        writer.writerow([
            customer.id,
            customer.store.name,
            customer.name,
            customer.contact_person,
            customer.address,
            customer.phone,
            customer.delivery_condition,
            customer.note,
        ])
    return buffer.getvalue().encode(encoding, errors='replace')
