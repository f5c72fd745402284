"""
Comprehensive test suite for Core module
Tests: List helpers, sequential ids, store context, auth endpoints, audit logs
"""
from datetime import date
from decimal import Decimal
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, SimpleTestCase, RequestFactory
from rest_framework import status
from rest_framework.request import Request

from mbs.core.exceptions import ValidationFailed
from mbs.core.ids import next_sequential_id, next_detail_id
from mbs.core.listing import (
    search_rows, toggle_sort, sort_rows, paginate, page_window, items_info, TableQuery,
)
from mbs.core.models import AuditLog
from mbs.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from mbs.core.utils import create_audit_log
from mbs.customers.models import Customer
from mbs.deliveries.models import Delivery
from mbs.orders.models import Order
from mbs.reports.models import Statistics


ROWS = [
    {'id': 'C-00001', 'customer_name': '大阪商事', 'manager_name': '山田'},
    {'id': 'C-00002', 'customer_name': 'Osaka Books', 'manager_name': None},
    {'id': 'C-00003', 'customer_name': '深江工業', 'manager_name': 'osaka team'},
]
FIELDS = ('id', 'customer_name', 'manager_name')


class SearchRowsTests(SimpleTestCase):
    """Test keyword search over table rows"""

    def test_empty_keyword_returns_all_rows(self):
        """Test blank keyword leaves rows unchanged"""
        self.assertEqual(search_rows(ROWS, '', FIELDS), ROWS)
        self.assertEqual(search_rows(ROWS, '   ', FIELDS), ROWS)

    def test_search_all_fields_is_case_insensitive(self):
        """Test keyword matches any searchable field ignoring case"""
        result = search_rows(ROWS, 'OSAKA', FIELDS)
        self.assertEqual([row['id'] for row in result], ['C-00002', 'C-00003'])

    def test_search_single_field(self):
        """Test selected field restricts the match"""
        result = search_rows(ROWS, 'osaka', FIELDS, field='customer_name')
        self.assertEqual([row['id'] for row in result], ['C-00002'])

    def test_none_values_never_match(self):
        """Test None is not treated as the text 'None'"""
        self.assertEqual(search_rows(ROWS, 'none', FIELDS, field='manager_name'), [])


class SortRowsTests(SimpleTestCase):
    """Test column sorting"""

    def test_toggle_sort(self):
        """Test header click cycles ascending then descending"""
        self.assertEqual(toggle_sort(None, 'id'), ('id', 'asc'))
        self.assertEqual(toggle_sort(('id', 'asc'), 'id'), ('id', 'desc'))
        self.assertEqual(toggle_sort(('id', 'desc'), 'id'), ('id', 'asc'))
        self.assertEqual(toggle_sort(('id', 'asc'), 'customer_name'), ('customer_name', 'asc'))

    def test_numbers_sort_numerically(self):
        """Test numeric columns do not sort as text"""
        rows = [{'v': Decimal('100')}, {'v': Decimal('9.5')}, {'v': 20}]
        self.assertEqual([row['v'] for row in sort_rows(rows, 'v')], [Decimal('9.5'), 20, Decimal('100')])

    def test_dates_sort_chronologically(self):
        """Test date columns sort by date"""
        rows = [{'d': date(2024, 3, 1)}, {'d': date(2023, 12, 31)}, {'d': None}]
        result = sort_rows(rows, 'd', 'desc')
        self.assertEqual([row['d'] for row in result], [date(2024, 3, 1), date(2023, 12, 31), None])

    def test_none_sorts_as_empty_text(self):
        """Test None sorts before other strings ascending"""
        result = sort_rows(ROWS, 'manager_name')
        self.assertEqual([row['id'] for row in result], ['C-00002', 'C-00003', 'C-00001'])

    def test_sort_is_stable(self):
        """Test equal keys keep their original order"""
        rows = [{'k': 'a', 'n': 1}, {'k': 'b', 'n': 2}, {'k': 'a', 'n': 3}]
        self.assertEqual([row['n'] for row in sort_rows(rows, 'k')], [1, 3, 2])


class PaginationTests(SimpleTestCase):
    """Test paging helpers"""

    def setUp(self):
        self.rows = [{'id': i, 'name': f'row {i}'} for i in range(1, 33)]

    def test_paginate_middle_page(self):
        """Test second page slice and bounds"""
        page = paginate(self.rows, 2, 15)
        self.assertEqual(page.total_pages, 3)
        self.assertEqual([row['id'] for row in page.rows], list(range(16, 31)))
        self.assertEqual(items_info(page.start, page.end, page.total_items), '16-30 / 32件')

    def test_page_number_is_clamped(self):
        """Test out-of-range pages fall back to the nearest page"""
        self.assertEqual(paginate(self.rows, 99, 15).number, 3)
        self.assertEqual(paginate(self.rows, 0, 15).number, 1)
        self.assertEqual(paginate(self.rows, -4, 15).number, 1)

    def test_empty_rows_have_one_page(self):
        """Test an empty table still reports one page"""
        page = paginate([], 3, 15)
        self.assertEqual(page.number, 1)
        self.assertEqual(page.total_pages, 1)
        self.assertEqual(items_info(page.start, page.end, page.total_items), '0件')

    def test_pad_fills_last_page_with_blank_rows(self):
        """Test padding keeps the page at full height"""
        page = paginate(self.rows, 3, 15, pad=True)
        self.assertEqual(len(page.rows), 15)
        self.assertEqual(page.rows[1], {'id': 32, 'name': 'row 32'})
        self.assertEqual(page.rows[2], {'id': None, 'name': None})

    def test_page_window(self):
        """Test pager window around the current page"""
        self.assertEqual(page_window(2, 4), [1, 2, 3, 4])
        self.assertEqual(page_window(2, 10), [1, 2, 3, 4, 5])
        self.assertEqual(page_window(9, 10), [6, 7, 8, 9, 10])
        self.assertEqual(page_window(6, 10), [4, 5, 6, 7, 8])


class TableQueryTests(SimpleTestCase):
    """Test query parameter parsing"""

    def make_request(self, **params):
        return Request(RequestFactory().get('/', params))

    def test_payload_shape(self):
        """Test search, sort and page are applied in order"""
        request = self.make_request(search='osaka', sort='id', direction='desc', page='1', page_size='1')
        payload = TableQuery.from_request(request, FIELDS).to_payload(ROWS)
        self.assertEqual(payload['count'], 2)
        self.assertEqual(payload['total_pages'], 2)
        self.assertEqual(payload['results'][0]['id'], 'C-00003')
        self.assertEqual(payload['next'], 2)
        self.assertIsNone(payload['previous'])
        self.assertEqual(payload['sort'], {'key': 'id', 'direction': 'desc'})
        self.assertEqual(payload['sort_toggles']['id'], 'asc')
        self.assertEqual(payload['items_info'], '1-1 / 2件')

    def test_padded_empty_search_keeps_columns(self):
        """Test blank rows carry every column when nothing matches"""
        columns = ['id', 'customer_name', 'manager_name', 'store_name']
        request = self.make_request(search='zzz', pad='1', page_size='3')
        payload = TableQuery.from_request(request, FIELDS, columns=columns).to_payload(ROWS)
        self.assertEqual(payload['count'], 0)
        self.assertEqual(payload['items_info'], '0件')
        self.assertEqual(payload['results'], [dict.fromkeys(columns)] * 3)

    def test_padded_rows_default_to_query_fields(self):
        """Test search and sort fields are the columns when none are given"""
        request = self.make_request(search='zzz', pad='true', page_size='2')
        payload = TableQuery.from_request(request, FIELDS).to_payload(ROWS)
        self.assertEqual(payload['results'], [dict.fromkeys(FIELDS)] * 2)

    def test_unknown_sort_field_rejected(self):
        """Test sorting by a column that is not offered"""
        with self.assertRaises(ValidationFailed):
            TableQuery.from_request(self.make_request(sort='password'), FIELDS)

    def test_unknown_search_field_rejected(self):
        """Test searching a column that is not offered"""
        with self.assertRaises(ValidationFailed):
            TableQuery.from_request(self.make_request(field='address'), FIELDS)

    def test_invalid_numbers_fall_back_to_defaults(self):
        """Test garbage page parameters do not fail"""
        query = TableQuery.from_request(self.make_request(page='x', page_size='0'), FIELDS)
        self.assertEqual(query.page, 1)
        self.assertEqual(query.page_size, 1)


class SequentialIdTests(TestCase):
    """Test readable id generation"""

    def setUp(self):
        self.store = TestDataFactory.create_store()

    def test_first_ids(self):
        """Test empty tables start at 1"""
        self.assertEqual(Customer.next_id(), 'C-00001')
        self.assertEqual(Order.next_id(), 'O0000001')

    def test_next_id_after_highest(self):
        """Test gaps are not reused"""
        TestDataFactory.create_customer(store=self.store, customer_id='C-00007')
        TestDataFactory.create_customer(store=self.store, customer_id='C-00002')
        self.assertEqual(next_sequential_id(Customer.objects.all(), 'C-', 5), 'C-00008')

    def test_soft_deleted_ids_count(self):
        """Test deleted customers keep their number"""
        customer = TestDataFactory.create_customer(store=self.store, customer_id='C-00010')
        customer.soft_delete()
        self.assertEqual(Customer.next_id(), 'C-00011')

    def test_non_numeric_ids_ignored(self):
        """Test imported free-form ids do not break the sequence"""
        TestDataFactory.create_customer(store=self.store, customer_id='CUST-A')
        TestDataFactory.create_customer(store=self.store, customer_id='C-ABC')
        self.assertEqual(Customer.next_id(), 'C-00001')

    def test_detail_ids(self):
        """Test line ids are numbered per parent"""
        customer = TestDataFactory.create_customer(store=self.store)
        order = TestDataFactory.create_order(customer)
        TestDataFactory.create_order_detail(order)
        TestDataFactory.create_order_detail(order)
        self.assertEqual(
            next_detail_id(order.details.model.objects.all(), order.id),
            f'{order.id}-03',
        )


class AuthTests(TestCase):
    """Test auth endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user(username='staffer', password='testpass123')
        self.client = AuthenticatedAPIClient()

    def test_login_returns_tokens(self):
        """Test JWT login"""
        response = self.client.post('/api/v1/auth/login/', {'username': 'staffer', 'password': 'testpass123'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn('access', response.data)
        self.assertIn('refresh', response.data)

    def test_login_wrong_password(self):
        """Test login with bad credentials"""
        response = self.client.post('/api/v1/auth/login/', {'username': 'staffer', 'password': 'nope'})
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_requires_authentication(self):
        """Test anonymous access is refused"""
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_401_UNAUTHORIZED)

    def test_me_includes_selected_store(self):
        """Test current user payload carries the store cookie"""
        store = TestDataFactory.create_store(name='今里店')
        self.client.authenticate_user(self.user).select_store(store)
        response = self.client.get('/api/v1/auth/me/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['username'], 'staffer')
        self.assertEqual(response.data['selected_store']['id'], str(store.id))

    def test_me_without_store(self):
        """Test no selected store is reported as None"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/auth/me/')
        self.assertIsNone(response.data['selected_store'])


class AuditLogTests(TestCase):
    """Test audit log endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.other = TestDataFactory.create_user()
        self.admin = TestDataFactory.create_user(is_staff=True)
        self.client = AuthenticatedAPIClient()
        create_audit_log(action='create', model_name='Customer', object_id='C-00001', user=self.user)
        create_audit_log(action='delete', model_name='Order', object_id='O0000001', user=self.other)

    def test_create_audit_log_requires_fields(self):
        """Test incomplete entries are skipped"""
        self.assertIsNone(create_audit_log(action='create', model_name='Customer'))

    def test_non_staff_sees_own_entries(self):
        """Test audit log list is limited to the caller"""
        self.client.authenticate_user(self.user)
        response = self.client.get('/api/v1/audit-logs/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['object_id'], 'C-00001')

    def test_staff_filters_by_action(self):
        """Test staff can filter every entry"""
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/?action=delete')
        self.assertEqual(len(response.data), 1)
        self.assertEqual(response.data[0]['model_name'], 'Order')

    def test_invalid_date_filter(self):
        """Test malformed date parameter"""
        self.client.authenticate_user(self.admin)
        response = self.client.get('/api/v1/audit-logs/?date_from=2024/01/01')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('date_from', response.data['error'])

    def test_detail_of_other_user_forbidden(self):
        """Test non-staff cannot read someone else's entry"""
        entry = AuditLog.objects.get(user=self.other)
        self.client.authenticate_user(self.user)
        response = self.client.get(f'/api/v1/audit-logs/{entry.id}/')
        self.assertEqual(response.status_code, status.HTTP_403_FORBIDDEN)


class SeedDemoCommandTests(TestCase):
    """Test the seed_demo command"""

    def test_seed_and_flush(self):
        """Test demo data goes through the services and can be reloaded"""
        call_command('seed_demo', stdout=StringIO())
        self.assertEqual(Customer.objects.count(), 3)
        self.assertEqual(Order.objects.count(), 3)
        self.assertEqual(Delivery.objects.count(), 3)
        self.assertEqual(Statistics.objects.count(), 3)
        self.assertFalse(Order.objects.filter(status='complete').exists())

        call_command('seed_demo', flush=True, stdout=StringIO())
        self.assertEqual(Customer.objects.count(), 3)
        self.assertEqual(Customer.objects.order_by('id').first().id, 'C-00001')
