"""
Test utilities and factories for creating test data
"""
from django.contrib.auth import get_user_model
from rest_framework.test import APIClient
from rest_framework_simplejwt.tokens import RefreshToken
from mbs.core.store_context import SELECTED_STORE_ID_COOKIE
from mbs.stores.models import Store
from mbs.customers.models import Customer
from mbs.orders.models import Order, OrderDetail
from mbs.deliveries.models import Delivery, DeliveryDetail, DeliveryAllocation
from decimal import Decimal
from django.utils import timezone
import random
import string

User = get_user_model()


class TestDataFactory:
    """Factory class for creating test data"""

    @staticmethod
    def random_string(length=10):
        """Generate a random string"""
        return ''.join(random.choices(string.ascii_letters + string.digits, k=length))

    @staticmethod
    def create_user(username=None, email=None, password='testpass123', is_staff=False, is_superuser=False):
        """Create a test user"""
        if not username:
            username = f'testuser_{TestDataFactory.random_string(6)}'
        if not email:
            email = f'{username}@test.com'
        return User.objects.create_user(
            username=username,
            email=email,
            password=password,
            is_staff=is_staff,
            is_superuser=is_superuser
        )

    @staticmethod
    def create_store(name=None):
        """Create a test store"""
        if not name:
            name = f'Store_{TestDataFactory.random_string(6)}'
        return Store.objects.create(name=name)

    @staticmethod
    def create_customer(store=None, name=None, customer_id=None, **fields):
        """Create a test customer"""
        if not store:
            store = TestDataFactory.create_store()
        if not name:
            name = f'Customer_{TestDataFactory.random_string(6)}'
        return Customer.objects.create(
            id=customer_id or Customer.next_id(),
            store=store,
            name=name,
            **fields
        )

    @staticmethod
    def create_order(customer, order_date=None, status='incomplete', user=None):
        """Create a test order without lines"""
        return Order.objects.create(
            id=Order.next_id(),
            customer=customer,
            order_date=order_date or timezone.localdate(),
            status=status,
            created_by=user
        )

    @staticmethod
    def create_order_detail(order, product_name=None, unit_price=None, quantity=10):
        """Create a test order line"""
        if not product_name:
            product_name = f'Product_{TestDataFactory.random_string(6)}'
        if unit_price is None:
            unit_price = Decimal('100.00')
        return OrderDetail.objects.create(
            id=order.next_detail_id(),
            order=order,
            product_name=product_name,
            unit_price=unit_price,
            quantity=quantity
        )

    @staticmethod
    def create_delivery(customer, delivery_date=None, user=None):
        """Create a test delivery without lines"""
        return Delivery.objects.create(
            id=Delivery.next_id(),
            customer=customer,
            delivery_date=delivery_date or timezone.localdate(),
            created_by=user
        )

    @staticmethod
    def allocate(delivery, order_detail, quantity):
        """Deliver ``quantity`` of an order line with a new delivery line"""
        detail = DeliveryDetail.objects.create(
            id=delivery.next_detail_id(),
            delivery=delivery,
            product_name=order_detail.product_name,
            unit_price=order_detail.unit_price,
            quantity=quantity
        )
        allocation = DeliveryAllocation.objects.create(
            order_detail=order_detail,
            delivery_detail=detail,
            allocated_quantity=quantity
        )
        delivery.recalculate_totals()
        return allocation


class AuthenticatedAPIClient(APIClient):
    """APIClient with authentication helper"""

    def authenticate_user(self, user):
        """Authenticate the client with a user"""
        refresh = RefreshToken.for_user(user)
        self.credentials(HTTP_AUTHORIZATION=f'Bearer {refresh.access_token}')
        return self

    def select_store(self, store):
        """Send ``store`` as the selected store on every request"""
        self.cookies[SELECTED_STORE_ID_COOKIE] = str(store.id)
        return self

    def clear_store(self):
        if SELECTED_STORE_ID_COOKIE in self.cookies:
            del self.cookies[SELECTED_STORE_ID_COOKIE]
        return self

    def logout(self):
        """Remove authentication"""
        self.credentials()
        self.clear_store()
