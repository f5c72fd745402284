"""
Comprehensive test suite for Orders module
Tests: Order totals, delivery status, order CRUD, line reconciliation, filters, edge cases
"""
from datetime import date
from decimal import Decimal

from django.test import TestCase
from rest_framework import status

from mbs.core.exceptions import Conflict, ValidationFailed
from mbs.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from mbs.orders.models import Order, OrderDetail
from mbs.orders.services import reconcile_order_lines, refresh_order_status


class OrderModelTests(TestCase):
    """Test Order and OrderDetail model methods"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.order = TestDataFactory.create_order(self.customer)

    def test_order_total_ignores_deleted_lines(self):
        """Test total over active lines"""
        TestDataFactory.create_order_detail(self.order, unit_price=Decimal('120.00'), quantity=3)
        deleted = TestDataFactory.create_order_detail(self.order, unit_price=Decimal('999.00'), quantity=1)
        deleted.soft_delete()
        self.assertEqual(self.order.get_total(), Decimal('360.00'))

    def test_delivery_status(self):
        """Test undelivered, partial and delivered lines"""
        line = TestDataFactory.create_order_detail(self.order, quantity=10)
        self.assertEqual(line.get_delivery_status(), 'undelivered')

        delivery = TestDataFactory.create_delivery(self.customer)
        allocation = TestDataFactory.allocate(delivery, line, 4)
        self.assertEqual(line.get_delivery_status(), 'partially_delivered')
        self.assertEqual(line.get_remaining_quantity(), 6)

        allocation.allocated_quantity = 10
        allocation.save()
        self.assertEqual(line.get_delivery_status(), 'delivered')
        self.assertTrue(self.order.is_fully_delivered())

    def test_deleted_allocations_do_not_count(self):
        """Test soft-deleted allocations free the quantity again"""
        line = TestDataFactory.create_order_detail(self.order, quantity=5)
        allocation = TestDataFactory.allocate(TestDataFactory.create_delivery(self.customer), line, 5)
        allocation.soft_delete()
        self.assertEqual(line.get_delivered_quantity(), 0)

    def test_order_without_lines_is_not_delivered(self):
        """Test an empty order never completes"""
        self.assertFalse(self.order.is_fully_delivered())
        self.assertEqual(refresh_order_status(self.order), 'incomplete')


class OrderLineReconciliationTests(TestCase):
    """Test replacing the lines of an order"""

    def setUp(self):
        self.customer = TestDataFactory.create_customer()
        self.order = TestDataFactory.create_order(self.customer)
        self.line = TestDataFactory.create_order_detail(self.order, quantity=10)

    def line_data(self, **overrides):
        data = {
            'id': self.line.id,
            'product_name': self.line.product_name,
            'unit_price': self.line.unit_price,
            'quantity': self.line.quantity,
            'description': '',
        }
        data.update(overrides)
        return data

    def test_update_add_and_remove(self):
        """Test lines are updated, added and soft-deleted"""
        extra = TestDataFactory.create_order_detail(self.order)
        reconcile_order_lines(self.order, [
            self.line_data(quantity=12),
            {'product_name': '新商品', 'unit_price': Decimal('50'), 'quantity': 2, 'description': ''},
        ])
        self.line.refresh_from_db()
        extra.refresh_from_db()
        self.assertEqual(self.line.quantity, 12)
        self.assertTrue(extra.is_deleted)
        self.assertTrue(OrderDetail.objects.filter(order=self.order, product_name='新商品', id=f'{self.order.id}-03').exists())

    def test_quantity_below_delivered_refused(self):
        """Test delivered quantities are protected"""
        TestDataFactory.allocate(TestDataFactory.create_delivery(self.customer), self.line, 6)
        with self.assertRaises(ValidationFailed):
            reconcile_order_lines(self.order, [self.line_data(quantity=5)])

    def test_removing_delivered_line_refused(self):
        """Test lines with deliveries cannot be dropped"""
        TestDataFactory.allocate(TestDataFactory.create_delivery(self.customer), self.line, 1)
        with self.assertRaises(Conflict):
            reconcile_order_lines(self.order, [
                {'product_name': '別商品', 'unit_price': Decimal('10'), 'quantity': 1, 'description': ''},
            ])

    def test_foreign_line_id_refused(self):
        """Test ids of another order's lines"""
        other = TestDataFactory.create_order(self.customer)
        other_line = TestDataFactory.create_order_detail(other)
        with self.assertRaises(ValidationFailed):
            reconcile_order_lines(self.order, [self.line_data(id=other_line.id)])


class OrderAPITests(TestCase):
    """Test order endpoints"""

    def setUp(self):
        self.user = TestDataFactory.create_user()
        self.store = TestDataFactory.create_store()
        self.customer = TestDataFactory.create_customer(store=self.store, name='大阪商事')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user).select_store(self.store)

    def order_payload(self, **overrides):
        payload = {
            'customer': self.customer.id,
            'order_date': '2024-04-01',
            'note': '至急',
            'details': [
                {'product_name': 'ボールペン', 'unit_price': '120.00', 'quantity': 10},
                {'product_name': '', 'description': '名入れ加工', 'unit_price': '3000', 'quantity': 1},
            ],
        }
        payload.update(overrides)
        return payload

    def test_create_order(self):
        """Test order creation with lines"""
        response = self.client.post('/api/v1/orders/', self.order_payload(), format='json')
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertEqual(response.data['id'], 'O0000001')
        self.assertEqual(response.data['status'], 'incomplete')
        self.assertEqual(response.data['total'], Decimal('4200.00'))
        self.assertEqual([line['id'] for line in response.data['details']], ['O0000001-01', 'O0000001-02'])

    def test_create_order_requires_customer(self):
        """Test missing customer"""
        response = self.client.post('/api/v1/orders/', self.order_payload(customer=''), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['customer'][0], 'Select a customer')

    def test_create_order_requires_lines(self):
        """Test order without lines"""
        response = self.client.post('/api/v1/orders/', self.order_payload(details=[]), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_line_needs_name_or_description(self):
        """Test blank line content"""
        details = [{'product_name': '', 'description': '', 'unit_price': '10', 'quantity': 1}]
        response = self.client.post('/api/v1/orders/', self.order_payload(details=details), format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_create_order_for_other_store_customer(self):
        """Test customers of another store cannot be used"""
        other = TestDataFactory.create_customer()
        response = self.client.post('/api/v1/orders/', self.order_payload(customer=other.id), format='json')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertFalse(Order.objects.exists())

    def test_list_orders_with_filters_and_sort(self):
        """Test order table filters and total sort"""
        small = TestDataFactory.create_order(self.customer, order_date=date(2024, 1, 10))
        TestDataFactory.create_order_detail(small, unit_price=Decimal('9.00'), quantity=1)
        large = TestDataFactory.create_order(self.customer, order_date=date(2024, 2, 10), status='complete')
        TestDataFactory.create_order_detail(large, unit_price=Decimal('100.00'), quantity=1)

        response = self.client.get('/api/v1/orders/?sort=total_amount&direction=desc')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['id'] for row in response.data['results']], [large.id, small.id])

        response = self.client.get('/api/v1/orders/?status=complete')
        self.assertEqual(response.data['count'], 1)

        response = self.client.get('/api/v1/orders/?date_from=2024-02-01')
        self.assertEqual([row['id'] for row in response.data['results']], [large.id])

    def test_list_hides_orders_of_deleted_customers(self):
        """Test deleted customers drop their orders from the table"""
        TestDataFactory.create_order(self.customer)
        self.customer.soft_delete()
        response = self.client.get('/api/v1/orders/')
        self.assertEqual(response.data['count'], 0)

    def test_invalid_filter(self):
        """Test malformed filter value"""
        response = self.client.get('/api/v1/orders/?date_from=yesterday')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_get_order_of_deleted_customer(self):
        """Test the detail view explains why it cannot show the order"""
        order = TestDataFactory.create_order(self.customer)
        self.customer.soft_delete()
        response = self.client.get(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertIn('customer has been deleted', response.data['error'])

    def test_update_order_lines(self):
        """Test replacing lines through the API"""
        created = self.client.post('/api/v1/orders/', self.order_payload(), format='json').data
        first = created['details'][0]
        payload = self.order_payload(details=[
            {'id': first['id'], 'product_name': first['product_name'], 'unit_price': '100', 'quantity': 5},
        ])
        response = self.client.put(f"/api/v1/orders/{created['id']}/", payload, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(len(response.data['details']), 1)
        self.assertEqual(response.data['total'], Decimal('500.00'))

    def test_patch_note_only(self):
        """Test partial update keeps the lines"""
        created = self.client.post('/api/v1/orders/', self.order_payload(), format='json').data
        response = self.client.patch(f"/api/v1/orders/{created['id']}/", {'note': '変更'}, format='json')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['note'], '変更')
        self.assertEqual(len(response.data['details']), 2)

    def test_patch_line_without_quantity(self):
        """Test partial update still needs complete lines"""
        created = self.client.post('/api/v1/orders/', self.order_payload(), format='json').data
        first = created['details'][0]
        response = self.client.patch(f"/api/v1/orders/{created['id']}/", {
            'details': [{'id': first['id'], 'product_name': '名称変更'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertIn('details', response.data)
        self.assertEqual(OrderDetail.objects.get(pk=first['id']).product_name, 'ボールペン')

    def test_patch_new_line_needs_price_and_quantity(self):
        """Test new lines are not saved with default price and quantity"""
        created = self.client.post('/api/v1/orders/', self.order_payload(), format='json').data
        lines = [{'id': line['id'], 'product_name': line['product_name'], 'description': line['description'],
                  'unit_price': str(line['unit_price']), 'quantity': line['quantity']}
                 for line in created['details']]
        response = self.client.patch(f"/api/v1/orders/{created['id']}/", {
            'details': lines + [{'product_name': '追加商品'}],
        }, format='json')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertFalse(OrderDetail.objects.filter(product_name='追加商品').exists())

    def test_change_customer_with_deliveries_refused(self):
        """Test delivered orders stay with their customer"""
        order = TestDataFactory.create_order(self.customer)
        line = TestDataFactory.create_order_detail(order)
        TestDataFactory.allocate(TestDataFactory.create_delivery(self.customer), line, 1)
        other = TestDataFactory.create_customer(store=self.store)
        response = self.client.patch(f'/api/v1/orders/{order.id}/', {'customer': other.id}, format='json')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_delete_order(self):
        """Test soft delete of an undelivered order"""
        order = TestDataFactory.create_order(self.customer)
        TestDataFactory.create_order_detail(order)
        response = self.client.delete(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        order.refresh_from_db()
        self.assertTrue(order.is_deleted)
        self.assertTrue(all(detail.is_deleted for detail in order.details.all()))

    def test_delete_order_with_deliveries_refused(self):
        """Test orders with deliveries are kept"""
        order = TestDataFactory.create_order(self.customer)
        line = TestDataFactory.create_order_detail(order)
        TestDataFactory.allocate(TestDataFactory.create_delivery(self.customer), line, 1)
        response = self.client.delete(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)

    def test_order_of_other_store_not_found(self):
        """Test store scoping of the detail view"""
        order = TestDataFactory.create_order(TestDataFactory.create_customer())
        response = self.client.get(f'/api/v1/orders/{order.id}/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
