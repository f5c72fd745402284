"""
Comprehensive test suite for Customers module
Tests: CSV validation, CSV import/export, customer CRUD, store scoping, soft delete
"""
import os
import tempfile
from io import StringIO

from django.core.cache import cache
from django.core.files.uploadedfile import SimpleUploadedFile
from django.core.management import call_command
from django.core.management.base import CommandError
from django.test import TestCase
from rest_framework import status

from mbs.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from mbs.customers.csv_import import (
    CSV_HEADERS, CsvImportError, decode_csv, validate_customer_csv, import_customers_csv,
    export_customers_csv,
)
from mbs.customers.models import Customer

HEADER = ','.join(CSV_HEADERS)


def make_csv(*lines, header=HEADER, encoding='cp932'):
    return '\r\n'.join([header, *lines]).encode(encoding)


class CustomerCsvValidationTests(TestCase):
    """Test the customer CSV validator"""

    def validate(self, raw, store_name='今里店'):
        return validate_customer_csv(decode_csv(raw), store_name)

    def test_valid_file(self):
        """Test a well-formed file produces rows and no errors"""
        result = self.validate(make_csv(
            'C-00001,今里店,大阪商事,山田,大阪市,06-1234-5678,午前中,',
            ',今里店,深江工業,,,,,',
        ))
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.rows), 2)
        self.assertEqual(result.rows[0].name, '大阪商事')
        self.assertEqual(result.rows[1].line, 3)
        self.assertEqual(len(result.warnings), 1)

    def test_empty_file(self):
        """Test a file without content"""
        result = self.validate(b'')
        self.assertEqual(result.errors, ['CSV file is empty'])

    def test_header_only(self):
        """Test a file with no data rows"""
        result = self.validate(make_csv())
        self.assertEqual(result.errors, ['CSV file has no data rows (header only)'])

    def test_missing_required_header(self):
        """Test header without the customer name column"""
        header = ','.join(['顧客ID', '店舗名', '会社名', '担当者名', '住所', '電話番号', '配送条件', '備考'])
        result = self.validate(make_csv('C-00001,今里店,大阪商事,,,,,', header=header))
        self.assertFalse(result.is_valid)
        self.assertIn('Missing required column: 顧客名', result.errors)

    def test_column_count(self):
        """Test rows with the wrong number of cells"""
        result = self.validate(make_csv('C-00001,今里店,大阪商事'))
        self.assertEqual(result.errors, ['Line 2: expected 8 columns, found 3'])

    def test_store_mismatch(self):
        """Test rows for another store are rejected"""
        result = self.validate(make_csv('C-00001,深江橋店,大阪商事,,,,,'))
        self.assertFalse(result.is_valid)
        self.assertIn('深江橋店', result.errors[0])

    def test_name_required(self):
        """Test blank customer name"""
        result = self.validate(make_csv('C-00001,今里店,,,,,,'))
        self.assertEqual(result.errors, ['Line 2: customer name is required'])

    def test_name_too_long(self):
        """Test customer names over 100 characters"""
        result = self.validate(make_csv(f"C-00001,今里店,{'商' * 101},,,,,"))
        self.assertEqual(result.errors, ['Line 2: customer name must be at most 100 characters'])

    def test_bounded_columns_too_long(self):
        """Test contact person, address, phone and delivery condition limits"""
        result = self.validate(make_csv(
            f"C-00001,今里店,大阪商事,{'山' * 101},{'住' * 256},{'0' * 31},{'条' * 256},",
        ))
        self.assertEqual(result.errors, [
            'Line 2: contact person must be at most 100 characters',
            'Line 2: address must be at most 255 characters',
            'Line 2: phone number must be at most 30 characters',
            'Line 2: delivery condition must be at most 255 characters',
        ])

    def test_columns_at_limit_accepted(self):
        """Test values exactly at the column limits"""
        result = self.validate(make_csv(
            f"C-00001,今里店,{'商' * 100},{'山' * 100},{'住' * 255},{'0' * 30},{'条' * 255},",
        ))
        self.assertTrue(result.is_valid)

    def test_reserved_ids(self):
        """Test ids that collide with fixed customer routes"""
        result = self.validate(make_csv('all,今里店,大阪商事,,,,,', 'Export,今里店,深江工業,,,,,'))
        self.assertEqual(result.errors, [
            'Line 2: customer ID "all" is reserved',
            'Line 3: customer ID "Export" is reserved',
        ])

    def test_header_columns_out_of_order(self):
        """Test columns must stay in the import order"""
        header = ','.join(['顧客ID', '店舗名', '顧客名', '住所', '担当者名', '電話番号', '配送条件', '備考'])
        result = self.validate(make_csv('C-00001,今里店,大阪商事,,,,,', header=header))
        self.assertEqual(result.errors, [
            'Column 4 must be "担当者名", found "住所"',
            'Column 5 must be "住所", found "担当者名"',
        ])

    def test_duplicate_ids(self):
        """Test the same id twice in one file"""
        result = self.validate(make_csv(
            'C-00001,今里店,大阪商事,,,,,',
            'C-00001,今里店,深江工業,,,,,',
        ))
        self.assertEqual(result.errors, ['Line 3: duplicate customer ID "C-00001" (first seen on line 2)'])

    def test_invalid_id(self):
        """Test ids with forbidden characters"""
        result = self.validate(make_csv('C 01,今里店,大阪商事,,,,,'))
        self.assertEqual(result.errors, ['Line 2: invalid customer ID "C 01"'])

    def test_phone_warning(self):
        """Test an odd phone number is only a warning"""
        result = self.validate(make_csv('C-00001,今里店,大阪商事,,,電話なし,,'))
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.warnings), 1)

    def test_blank_lines_ignored(self):
        """Test empty lines between rows"""
        result = self.validate(make_csv('C-00001,今里店,大阪商事,,,,,', '', ',,,,,,,'))
        self.assertTrue(result.is_valid)
        self.assertEqual(len(result.rows), 1)

    def test_utf8_with_bom_accepted(self):
        """Test files re-saved as UTF-8 with BOM"""
        raw = b'\xef\xbb\xbf' + make_csv('C-00001,今里店,大阪商事,,,,,', encoding='utf-8')
        self.assertTrue(self.validate(raw).is_valid)

    def test_undecodable_file(self):
        """Test bytes that are not Shift_JIS"""
        with self.assertRaises(CsvImportError):
            decode_csv(b'\x82\xa0\x82')


class CustomerCsvImportTests(TestCase):
    """Test writing imported customers"""

    def setUp(self):
        self.store = TestDataFactory.create_store(name='今里店')

    def test_import_creates_and_generates_ids(self):
        """Test explicit and generated ids"""
        result = import_customers_csv(self.store, make_csv(
            ',今里店,深江工業,,,,,',
            'C-00005,今里店,大阪商事,山田,,,,',
        ))
        self.assertEqual(result.created_count, 2)
        self.assertEqual(Customer.objects.get(pk='C-00005').contact_person, '山田')
        self.assertTrue(Customer.objects.filter(pk='C-00006', name='深江工業').exists())

    def test_reimport_updates_and_restores(self):
        """Test existing ids of the same store are updated"""
        customer = TestDataFactory.create_customer(store=self.store, customer_id='C-00001', name='旧名')
        customer.soft_delete()
        result = import_customers_csv(self.store, make_csv('C-00001,今里店,新名,,,,,'))
        self.assertEqual(result.updated_count, 1)
        customer.refresh_from_db()
        self.assertEqual(customer.name, '新名')
        self.assertFalse(customer.is_deleted)

    def test_ids_of_other_store_skipped(self):
        """Test an id owned by another store is left alone"""
        other = TestDataFactory.create_store(name='深江橋店')
        TestDataFactory.create_customer(store=other, customer_id='C-00001', name='他店顧客')
        result = import_customers_csv(self.store, make_csv('C-00001,今里店,大阪商事,,,,,'))
        self.assertEqual(result.skipped_count, 1)
        self.assertEqual(Customer.objects.get(pk='C-00001').name, '他店顧客')

    def test_invalid_file_writes_nothing(self):
        """Test any error rejects the whole file"""
        with self.assertRaises(CsvImportError) as ctx:
            import_customers_csv(self.store, make_csv(
                'C-00001,今里店,大阪商事,,,,,',
                'C-00002,今里店,,,,,,',
            ))
        self.assertEqual(ctx.exception.errors, ['Line 3: customer name is required'])
        self.assertFalse(Customer.objects.exists())

    def test_export_round_trips_through_validator(self):
        """Test exported files are valid import files"""
        TestDataFactory.create_customer(store=self.store, name='大阪商事', phone='06-1111-2222')
        raw = export_customers_csv(Customer.objects.select_related('store'))
        result = validate_customer_csv(decode_csv(raw), '今里店')
        self.assertTrue(result.is_valid)
        self.assertEqual(result.rows[0].phone, '06-1111-2222')


class CustomerAPITests(TestCase):
    """Test customer endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.store = TestDataFactory.create_store(name='今里店')
        self.other_store = TestDataFactory.create_store(name='深江橋店')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user).select_store(self.store)

    def test_list_is_store_scoped(self):
        """Test only customers of the selected store are listed"""
        TestDataFactory.create_customer(store=self.store, name='大阪商事')
        TestDataFactory.create_customer(store=self.other_store, name='他店顧客')
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertEqual(response.data['results'][0]['customer_name'], '大阪商事')
        self.assertEqual(response.data['results'][0]['store_name'], '今里店')

    def test_list_search_and_sort(self):
        """Test list helpers on the customer table"""
        TestDataFactory.create_customer(store=self.store, name='Bravo', contact_person='x')
        TestDataFactory.create_customer(store=self.store, name='Alpha', contact_person='y')
        TestDataFactory.create_customer(store=self.store, name='Charlie')
        response = self.client.get('/api/v1/customers/?search=a&field=customer_name&sort=customer_name')
        self.assertEqual([row['customer_name'] for row in response.data['results']], ['Alpha', 'Bravo', 'Charlie'])
        response = self.client.get('/api/v1/customers/?sort=manager_name&direction=desc')
        self.assertEqual(response.data['results'][0]['manager_name'], 'y')

    def test_padded_list_without_matches(self):
        """Test blank rows keep the table columns"""
        response = self.client.get('/api/v1/customers/?search=zzz&pad=1&page_size=2')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['results'], [
            {'id': None, 'customer_name': None, 'manager_name': None, 'store_name': None},
        ] * 2)

    def test_list_rejects_unknown_sort(self):
        """Test invalid sort column"""
        response = self.client.get('/api/v1/customers/?sort=address')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_customer(self):
        """Test customer creation assigns the next id and the store"""
        TestDataFactory.create_customer(store=self.other_store, customer_id='C-00003')
        response = self.client.post('/api/v1/customers/', {'name': '大阪商事', 'phone': '06-1234-5678'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['id'], 'C-00004')
        self.assertEqual(response.data['store'], self.store.id)

    def test_create_customer_requires_name(self):
        """Test blank name"""
        response = self.client.post('/api/v1/customers/', {'name': ''})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['name'][0], 'Customer name is required')

    def test_new_customer_visible_in_cached_list(self):
        """Test the row cache is dropped when a customer is saved"""
        self.client.get('/api/v1/customers/')
        self.client.post('/api/v1/customers/', {'name': '大阪商事'})
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.data['count'], 1)

    def test_customer_of_other_store_not_found(self):
        """Test store scoping of the detail view"""
        customer = TestDataFactory.create_customer(store=self.other_store)
        response = self.client.get(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Customer not found')

    def test_update_customer(self):
        """Test partial update"""
        customer = TestDataFactory.create_customer(store=self.store)
        response = self.client.patch(f'/api/v1/customers/{customer.id}/', {'address': '大阪市東成区'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        customer.refresh_from_db()
        self.assertEqual(customer.address, '大阪市東成区')

    def test_delete_customer_is_soft(self):
        """Test deleted customers stay in the table but disappear from lists"""
        customer = TestDataFactory.create_customer(store=self.store)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        customer.refresh_from_db()
        self.assertTrue(customer.is_deleted)
        self.assertEqual(self.client.get('/api/v1/customers/').data['count'], 0)

    def test_delete_customer_with_open_orders_refused(self):
        """Test customers with undelivered order lines are kept"""
        customer = TestDataFactory.create_customer(store=self.store)
        order = TestDataFactory.create_order(customer)
        TestDataFactory.create_order_detail(order, quantity=2)
        response = self.client.delete(f'/api/v1/customers/{customer.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_all_customers_ordered_by_name(self):
        """Test the full customer list"""
        TestDataFactory.create_customer(store=self.store, name='B')
        TestDataFactory.create_customer(store=self.store, name='A')
        response = self.client.get('/api/v1/customers/all/')
        self.assertEqual([row['name'] for row in response.data], ['A', 'B'])

    def test_import_endpoint(self):
        """Test CSV upload"""
        upload = SimpleUploadedFile('customers.csv', make_csv('C-00001,今里店,大阪商事,,,,,'), content_type='text/csv')
        response = self.client.post('/api/v1/customers/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['status'], 'success')
        self.assertEqual(response.data['created_count'], 1)

    def test_import_endpoint_reports_errors(self):
        """Test invalid uploads list every error"""
        upload = SimpleUploadedFile('customers.csv', make_csv('C-00001,深江橋店,,,,,,'), content_type='text/csv')
        response = self.client.post('/api/v1/customers/import/', {'file': upload}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['status'], 'error')
        self.assertEqual(len(response.data['errors']), 2)

    def test_import_without_file(self):
        """Test upload with no file"""
        response = self.client.post('/api/v1/customers/import/', {}, format='multipart')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_export_endpoint(self):
        """Test CSV download in Shift_JIS"""
        TestDataFactory.create_customer(store=self.store, name='大阪商事')
        response = self.client.get('/api/v1/customers/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('attachment', response['Content-Disposition'])
        self.assertIn('大阪商事', response.content.decode('cp932'))


class ImportCustomersCommandTests(TestCase):
    """Test the import_customers management command"""

    def setUp(self):
        self.store = TestDataFactory.create_store(name='今里店')
        handle, self.path = tempfile.mkstemp(suffix='.csv')
        with os.fdopen(handle, 'wb') as f:
            f.write(make_csv('C-00001,今里店,大阪商事,,,,,'))

    def tearDown(self):
        os.remove(self.path)

    def test_dry_run_writes_nothing(self):
        """Test validation-only mode"""
        call_command('import_customers', csv_file=self.path, store='今里店', dry_run=True, stdout=StringIO())
        self.assertFalse(Customer.objects.exists())

    def test_import(self):
        """Test command import"""
        call_command('import_customers', csv_file=self.path, store=str(self.store.id), stdout=StringIO())
        self.assertTrue(Customer.objects.filter(pk='C-00001', store=self.store).exists())

    def test_unknown_store(self):
        """Test unknown store name"""
        with self.assertRaises(CommandError):
            call_command('import_customers', csv_file=self.path, store='存在しない店', stdout=StringIO())
