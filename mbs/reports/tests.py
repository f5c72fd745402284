"""
Comprehensive test suite for Reports module
Tests: Statistics recalculation, lead time, staleness, statistics list and CSV export
"""
from datetime import date, datetime, timedelta
from decimal import Decimal
from io import StringIO
from urllib.parse import quote

from django.core.management import call_command
from django.test import TestCase, SimpleTestCase, override_settings
from django.utils import timezone
from rest_framework import status

from mbs.core.models import AuditLog
from mbs.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from mbs.reports.models import Statistics
from mbs.reports.services import (
    calculate_average_lead_time, calculate_total_sales, recalculate_statistics,
    statistics_are_stale, build_statistics_csv, statistics_csv_filename,
)


class StatisticsCalculationTests(TestCase):
    """Test lead time and sales figures"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.customer = TestDataFactory.create_customer(store=self.store)

    def test_total_sales_over_active_lines(self):
        """Test deleted orders and lines are left out"""
        order = TestDataFactory.create_order(self.customer)
        TestDataFactory.create_order_detail(order, unit_price=Decimal('120.00'), quantity=10)
        TestDataFactory.create_order_detail(order, unit_price=Decimal('50.00'), quantity=1).soft_delete()
        deleted_order = TestDataFactory.create_order(self.customer)
        TestDataFactory.create_order_detail(deleted_order, unit_price=Decimal('999.00'), quantity=1)
        deleted_order.soft_delete()
        self.assertEqual(calculate_total_sales(self.customer), Decimal('1200.00'))

    def test_total_sales_without_orders(self):
        """Test customers without orders"""
        self.assertEqual(calculate_total_sales(self.customer), Decimal('0'))

    def test_average_lead_time(self):
        """Test earliest delivery on or after each order date"""
        TestDataFactory.create_order(self.customer, order_date=date(2024, 4, 1))
        TestDataFactory.create_order(self.customer, order_date=date(2024, 4, 10))
        TestDataFactory.create_order(self.customer, order_date=date(2024, 5, 1))
        TestDataFactory.create_delivery(self.customer, delivery_date=date(2024, 3, 30))
        TestDataFactory.create_delivery(self.customer, delivery_date=date(2024, 4, 4))
        TestDataFactory.create_delivery(self.customer, delivery_date=date(2024, 4, 10))
        # 2024-04-01 -> 04-04 is 3 days, 04-10 -> 04-10 is 0 days, 05-01 has no delivery
        self.assertEqual(calculate_average_lead_time(self.customer), Decimal('1.50'))

    def test_average_lead_time_without_deliveries(self):
        """Test no matched orders gives 0"""
        TestDataFactory.create_order(self.customer, order_date=date(2024, 4, 1))
        self.assertEqual(calculate_average_lead_time(self.customer), Decimal('0'))

    def test_deleted_deliveries_ignored(self):
        """Test soft-deleted deliveries do not count"""
        TestDataFactory.create_order(self.customer, order_date=date(2024, 4, 1))
        TestDataFactory.create_delivery(self.customer, delivery_date=date(2024, 4, 2)).soft_delete()
        TestDataFactory.create_delivery(self.customer, delivery_date=date(2024, 4, 8))
        self.assertEqual(calculate_average_lead_time(self.customer), Decimal('7.00'))

    def test_recalculate_upserts(self):
        """Test statistics are created once and then updated"""
        self.assertEqual(recalculate_statistics(self.store), 1)
        order = TestDataFactory.create_order(self.customer)
        TestDataFactory.create_order_detail(order, unit_price=Decimal('10.00'), quantity=3)
        recalculate_statistics(self.store)
        self.assertEqual(Statistics.objects.count(), 1)
        self.assertEqual(Statistics.objects.get().total_sales, Decimal('30.00'))

    def test_recalculate_drops_deleted_customers(self):
        """Test statistics of deleted customers are retired"""
        recalculate_statistics(self.store)
        self.customer.soft_delete()
        self.assertEqual(recalculate_statistics(self.store), 0)
        self.assertTrue(Statistics.objects.get(customer=self.customer).is_deleted)

    @override_settings(MBS_STATISTICS_MAX_AGE_HOURS=24)
    def test_staleness(self):
        """Test missing or old statistics are stale"""
        self.assertTrue(statistics_are_stale(self.store))
        recalculate_statistics(self.store)
        self.assertFalse(statistics_are_stale(self.store))
        self.assertTrue(statistics_are_stale(self.store, now=timezone.now() + timedelta(hours=25)))


class StatisticsCsvTests(SimpleTestCase):
    """Test the statistics CSV format"""

    def test_csv_content(self):
        """Test BOM, headers, rounding and quoting"""
        content = build_statistics_csv([
            {'customer_id': 'C-00001', 'customer_name': '大阪商事', 'average_lead_time': Decimal('2.25'), 'total_sales': Decimal('12000.00')},
            {'customer_id': 'C-00002', 'customer_name': 'Smith, "Books"', 'average_lead_time': 0, 'total_sales': Decimal('99.50')},
        ])
        self.assertTrue(content.startswith('\ufeff'))
        lines = content[1:].split('\n')
        self.assertEqual(lines[0], '顧客ID,顧客名,平均リードタイム（日）,累計売上額')
        self.assertEqual(lines[1], 'C-00001,大阪商事,2.3,12000')
        self.assertEqual(lines[2], 'C-00002,"Smith, ""Books""",0.0,99.5')

    def test_filename(self):
        """Test timestamped file name"""
        now = timezone.make_aware(datetime(2024, 4, 1, 9, 5, 7))
        self.assertEqual(statistics_csv_filename(now), '統計情報_20240401_09_05_07.csv')


class StatisticsAPITests(TestCase):
    """Test statistics endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.store = TestDataFactory.create_store()
        self.customer = TestDataFactory.create_customer(store=self.store, name='大阪商事')
        order = TestDataFactory.create_order(self.customer, order_date=date(2024, 4, 1))
        TestDataFactory.create_order_detail(order, unit_price=Decimal('100.00'), quantity=5)
        TestDataFactory.create_delivery(self.customer, delivery_date=date(2024, 4, 3))
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user).select_store(self.store)

    def test_list_recalculates_when_missing(self):
        """Test first access builds the statistics"""
        response = self.client.get('/api/v1/statistics/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.data['results'][0]
        self.assertEqual(row['customer_id'], self.customer.id)
        self.assertEqual(row['average_lead_time'], Decimal('2.00'))
        self.assertEqual(row['total_sales'], Decimal('500.00'))

    def test_list_requires_store(self):
        """Test statistics are store-scoped"""
        self.client.clear_store()
        response = self.client.get('/api/v1/statistics/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_force_recalculation(self):
        """Test manual recalculation"""
        response = self.client.post('/api/v1/statistics/recalculate/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['count'], 1)
        self.assertTrue(AuditLog.objects.filter(action='statistics_recalculate').exists())

    def test_export(self):
        """Test CSV download"""
        response = self.client.get('/api/v1/statistics/export/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertIn(quote('統計情報_'), response['Content-Disposition'])
        body = response.content.decode('utf-8')
        self.assertTrue(body.startswith('\ufeff'))
        self.assertIn('大阪商事,2.0,500', body)

    def test_export_without_rows(self):
        """Test export when the search matches nothing"""
        response = self.client.get('/api/v1/statistics/export/?search=zzz')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'No data to export')


class RecalculateStatisticsCommandTests(TestCase):
    """Test the recalculate_statistics command"""

    def test_all_stores(self):
        """Test every store is processed"""
        TestDataFactory.create_customer()
        TestDataFactory.create_customer()
        call_command('recalculate_statistics', stdout=StringIO())
        self.assertEqual(Statistics.objects.count(), 2)
