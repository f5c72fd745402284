"""
Comprehensive test suite for Deliveries module
Tests: Open order lines, delivery creation, allocation updates, totals, order status, store scoping
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from mbs.core.exceptions import NotFound, ValidationFailed
from mbs.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from mbs.deliveries.models import Delivery, DeliveryAllocation
from mbs.deliveries.services import (
    get_order_lines_for_delivery, create_delivery, update_delivery_allocations, delete_delivery,
)


class OpenOrderLineTests(TestCase):
    """Test the order lines offered for delivery"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.order = TestDataFactory.create_order(self.customer, order_date=date(2024, 4, 1))
        self.line_a = TestDataFactory.create_order_detail(self.order, quantity=10)
        self.line_b = TestDataFactory.create_order_detail(self.order, quantity=3)

    def test_remaining_quantity(self):
        """Test remaining quantity subtracts existing deliveries"""
        TestDataFactory.allocate(TestDataFactory.create_delivery(self.customer), self.line_a, 4)
        rows = {row['order_detail_id']: row for row in get_order_lines_for_delivery(self.customer)}
        self.assertEqual(rows[self.line_a.id]['remaining_quantity'], 6)
        self.assertEqual(rows[self.line_a.id]['current_allocation'], 0)
        self.assertEqual(rows[self.line_b.id]['remaining_quantity'], 3)

    def test_fully_delivered_lines_omitted(self):
        """Test lines with nothing left are not offered"""
        TestDataFactory.allocate(TestDataFactory.create_delivery(self.customer), self.line_b, 3)
        ids = [row['order_detail_id'] for row in get_order_lines_for_delivery(self.customer)]
        self.assertEqual(ids, [self.line_a.id])

    def test_current_delivery_excluded_from_remaining(self):
        """Test editing a delivery measures against other deliveries only"""
        first = TestDataFactory.create_delivery(self.customer)
        second = TestDataFactory.create_delivery(self.customer)
        TestDataFactory.allocate(first, self.line_a, 4)
        TestDataFactory.allocate(second, self.line_a, 6)
        rows = {row['order_detail_id']: row for row in get_order_lines_for_delivery(self.customer, second)}
        self.assertEqual(rows[self.line_a.id]['remaining_quantity'], 6)
        self.assertEqual(rows[self.line_a.id]['current_allocation'], 6)

    def test_deleted_orders_ignored(self):
        """Test lines of deleted orders are not offered"""
        self.order.soft_delete()
        self.assertEqual(get_order_lines_for_delivery(self.customer), [])


class DeliveryServiceTests(TestCase):
    """Test delivery creation and allocation changes"""

    def setUp(self):
        self.store = TestDataFactory.create_store()
        self.customer = TestDataFactory.create_customer(store=self.store)
        self.order = TestDataFactory.create_order(self.customer, order_date=date(2024, 4, 1))
        self.line_a = TestDataFactory.create_order_detail(self.order, unit_price=Decimal('120.00'), quantity=10)
        self.line_b = TestDataFactory.create_order_detail(self.order, unit_price=Decimal('500.00'), quantity=2)

    def deliver(self, *allocations):
        return create_delivery(
            self.store,
            customer=self.customer.id,
            delivery_date=date(2024, 4, 5),
            allocations=[{'order_detail': line.id, 'quantity': quantity} for line, quantity in allocations],
        )

    def test_create_delivery_totals(self):
        """Test one line per allocation and computed totals"""
        delivery = self.deliver((self.line_a, 4), (self.line_b, 2))
        self.assertEqual(delivery.id, 'D0000001')
        self.assertEqual(delivery.total_quantity, 6)
        self.assertEqual(delivery.total_amount, Decimal('1480.00'))
        self.assertEqual(
            sorted(delivery.details.values_list('id', flat=True)),
            ['D0000001-01', 'D0000001-02'],
        )

    def test_zero_quantities_ignored(self):
        """Test allocations of 0 are dropped"""
        delivery = self.deliver((self.line_a, 3), (self.line_b, 0))
        self.assertEqual(delivery.details.count(), 1)

    def test_nothing_to_deliver(self):
        """Test a delivery needs at least one item"""
        with self.assertRaises(ValidationFailed) as ctx:
            self.deliver((self.line_a, 0))
        self.assertEqual(ctx.exception.message, 'Select at least one item to deliver')

    def test_over_allocation_refused(self):
        """Test allocations cannot exceed the remaining quantity"""
        self.deliver((self.line_a, 8))
        with self.assertRaises(ValidationFailed):
            self.deliver((self.line_a, 3))
        self.assertEqual(Delivery.objects.count(), 1)

    def test_customer_of_other_store(self):
        """Test customers outside the store"""
        with self.assertRaises(NotFound) as ctx:
            create_delivery(
                TestDataFactory.create_store(),
                customer=self.customer.id,
                delivery_date=date(2024, 4, 5),
                allocations=[{'order_detail': self.line_a.id, 'quantity': 1}],
            )
        self.assertEqual(ctx.exception.message, 'Customer not found or access denied')

    def test_full_delivery_completes_order(self):
        """Test order status follows the deliveries"""
        delivery = self.deliver((self.line_a, 10), (self.line_b, 2))
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'complete')

        delete_delivery(delivery)
        self.order.refresh_from_db()
        self.assertEqual(self.order.status, 'incomplete')
        self.assertFalse(DeliveryAllocation.objects.active().exists())

    def test_update_allocations(self):
        """Test changing, removing and adding allocations"""
        delivery = self.deliver((self.line_a, 4))
        update_delivery_allocations(delivery, [
            {'order_detail': self.line_a.id, 'quantity': 6, 'unit_price': Decimal('100.00')},
            {'order_detail': self.line_b.id, 'quantity': 1},
        ])
        delivery.refresh_from_db()
        self.assertEqual(delivery.total_quantity, 7)
        self.assertEqual(delivery.total_amount, Decimal('1100.00'))

        update_delivery_allocations(delivery, [{'order_detail': self.line_a.id, 'quantity': 0}])
        delivery.refresh_from_db()
        self.assertEqual(delivery.total_quantity, 1)
        self.assertEqual(self.line_a.get_delivered_quantity(), 0)

    def test_update_cannot_exceed_remaining(self):
        """Test edits respect the other deliveries"""
        self.deliver((self.line_a, 7))
        second = self.deliver((self.line_a, 2))
        with self.assertRaises(ValidationFailed):
            update_delivery_allocations(second, [{'order_detail': self.line_a.id, 'quantity': 4}])


class DeliveryAPITests(TestCase):
    """Test delivery endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.store = TestDataFactory.create_store()
        self.customer = TestDataFactory.create_customer(store=self.store, name='大阪商事')
        self.order = TestDataFactory.create_order(self.customer, order_date=date(2024, 4, 1))
        self.line = TestDataFactory.create_order_detail(self.order, unit_price=Decimal('250.00'), quantity=4)
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user).select_store(self.store)

    def create(self, quantity=2):
        return self.client.post('/api/v1/deliveries/', {
            'customer': self.customer.id,
            'delivery_date': '2024-04-03',
            'note': '午前着',
            'allocations': [{'order_detail': self.line.id, 'quantity': quantity}],
        }, format='json')

    def test_create_delivery(self):
        """Test delivery creation"""
        response = self.create()
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['total_amount'], Decimal('500.00'))
        self.assertEqual(response.data['details'][0]['order_detail'], self.line.id)
        self.assertEqual(response.data['details'][0]['order_id'], self.order.id)

    def test_create_over_allocation(self):
        """Test over-delivery is rejected"""
        response = self.create(quantity=5)
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_list_deliveries(self):
        """Test delivery table rows"""
        self.create()
        response = self.client.get('/api/v1/deliveries/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        row = response.data['results'][0]
        self.assertEqual(row['delivery_date'], '2024/04/03')
        self.assertEqual(row['customer_name'], '大阪商事')
        self.assertEqual(row['total_quantity'], 2)

    def test_delivery_of_other_store_not_found(self):
        """Test store scoping of the detail view"""
        other_customer = TestDataFactory.create_customer()
        delivery = TestDataFactory.create_delivery(other_customer)
        response = self.client.get(f'/api/v1/deliveries/{delivery.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['error'], 'Delivery not found or access denied')

    def test_update_delivery(self):
        """Test header and allocation update"""
        delivery_id = self.create().data['id']
        response = self.client.patch(f'/api/v1/deliveries/{delivery_id}/', {
            'note': '変更',
            'allocations': [{'order_detail': self.line.id, 'quantity': 4}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['note'], '変更')
        self.assertEqual(response.data['total_quantity'], 4)

    def test_allocations_view(self):
        """Test open lines for an existing delivery"""
        delivery_id = self.create().data['id']
        response = self.client.get(f'/api/v1/deliveries/{delivery_id}/allocations/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['remaining_quantity'], 4)
        self.assertEqual(response.data[0]['current_allocation'], 2)

    def test_undelivered_lines_view(self):
        """Test open lines for a new delivery"""
        self.create()
        response = self.client.get(f'/api/v1/customers/{self.customer.id}/undelivered/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data[0]['remaining_quantity'], 2)
        self.assertEqual(response.data[0]['current_allocation'], 0)

    def test_delete_delivery(self):
        """Test soft delete frees the order line"""
        delivery_id = self.create(quantity=4).data['id']
        response = self.client.delete(f'/api/v1/deliveries/{delivery_id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertTrue(Delivery.objects.get(pk=delivery_id).is_deleted)
        self.assertEqual(self.line.get_remaining_quantity(), 4)
