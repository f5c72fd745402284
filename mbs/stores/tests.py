"""
Comprehensive test suite for Stores module
Tests: Store CRUD, store selection cookies, store-scoped request handling
"""
from django.core.cache import cache
from django.core.management import call_command
from django.test import TestCase
from rest_framework import status
from io import StringIO

from mbs.core.models import AuditLog
from mbs.core.test_utils import TestDataFactory, AuthenticatedAPIClient
from mbs.stores.models import Store


class StoreAPITests(TestCase):
    """Test store endpoints"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_list_stores_ordered_by_name(self):
        """Test store list"""
        TestDataFactory.create_store(name='深江橋店')
        TestDataFactory.create_store(name='今里店')
        response = self.client.get('/api/v1/stores/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual([row['name'] for row in response.data], sorted(['深江橋店', '今里店']))

    def test_store_list_cache_invalidated_on_create(self):
        """Test new stores show up after the list was cached"""
        self.client.get('/api/v1/stores/')
        TestDataFactory.create_store(name='緑橋本店')
        response = self.client.get('/api/v1/stores/')
        self.assertEqual([row['name'] for row in response.data], ['緑橋本店'])

    def test_create_store(self):
        """Test store creation writes an audit entry"""
        response = self.client.post('/api/v1/stores/', {'name': '今里店'})
        self.assertEqual(response.status_code, status.HTTP_201_CREATED)
        self.assertTrue(Store.objects.filter(name='今里店').exists())
        self.assertTrue(AuditLog.objects.filter(action='create', model_name='Store').exists())

    def test_create_store_requires_name(self):
        """Test blank store name"""
        response = self.client.post('/api/v1/stores/', {'name': '  '})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['name'][0], 'Store name is required')

    def test_create_duplicate_store(self):
        """Test store names are unique"""
        TestDataFactory.create_store(name='今里店')
        response = self.client.post('/api/v1/stores/', {'name': '今里店'})
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)

    def test_rename_store(self):
        """Test store update"""
        store = TestDataFactory.create_store(name='旧店')
        response = self.client.patch(f'/api/v1/stores/{store.id}/', {'name': '新店'})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        store.refresh_from_db()
        self.assertEqual(store.name, '新店')

    def test_delete_store_with_customers_refused(self):
        """Test a store that still has customers is kept"""
        store = TestDataFactory.create_store()
        TestDataFactory.create_customer(store=store)
        response = self.client.delete(f'/api/v1/stores/{store.id}/')
        self.assertEqual(response.status_code, status.HTTP_409_CONFLICT)
        self.assertTrue(Store.objects.filter(pk=store.id).exists())

    def test_delete_empty_store(self):
        """Test deleting a store without customers"""
        store = TestDataFactory.create_store()
        response = self.client.delete(f'/api/v1/stores/{store.id}/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertFalse(Store.objects.filter(pk=store.id).exists())


class StoreSelectionTests(TestCase):
    """Test the selected-store cookies and store-scoped views"""

    def setUp(self):
        cache.clear()
        self.user = TestDataFactory.create_user()
        self.store = TestDataFactory.create_store(name='今里店')
        self.client = AuthenticatedAPIClient()
        self.client.authenticate_user(self.user)

    def test_select_store_sets_cookies(self):
        """Test selection answers with both cookies"""
        response = self.client.post('/api/v1/stores/select/', {'store': self.store.id})
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.cookies['selectedStoreId'].value, str(self.store.id))
        self.assertEqual(response.cookies['selectedStoreName'].value, '%E4%BB%8A%E9%87%8C%E5%BA%97')
        self.assertTrue(AuditLog.objects.filter(action='store_select').exists())

    def test_select_unknown_store(self):
        """Test selecting a store that does not exist"""
        response = self.client.post('/api/v1/stores/select/', {'store': 999999})
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['status'], 'store_invalid')

    def test_current_store_after_selection(self):
        """Test the cookie set by selection is honoured"""
        self.client.post('/api/v1/stores/select/', {'store': self.store.id})
        response = self.client.get('/api/v1/stores/current/')
        self.assertEqual(response.status_code, status.HTTP_200_OK)
        self.assertEqual(response.data['name'], '今里店')

    def test_store_required(self):
        """Test store-scoped views without a selection"""
        response = self.client.get('/api/v1/stores/current/')
        self.assertEqual(response.status_code, status.HTTP_400_BAD_REQUEST)
        self.assertEqual(response.data['status'], 'store_required')

    def test_stale_store_cookie(self):
        """Test a cookie pointing at a deleted store"""
        self.client.cookies['selectedStoreId'] = '424242'
        response = self.client.get('/api/v1/customers/')
        self.assertEqual(response.status_code, status.HTTP_404_NOT_FOUND)
        self.assertEqual(response.data['status'], 'store_invalid')

    def test_store_header(self):
        """Test API clients may send the store as a header"""
        response = self.client.get('/api/v1/stores/current/', HTTP_X_STORE_ID=str(self.store.id))
        self.assertEqual(response.status_code, status.HTTP_200_OK)

    def test_clear_selection(self):
        """Test forgetting the selected store"""
        self.client.post('/api/v1/stores/select/', {'store': self.store.id})
        response = self.client.delete('/api/v1/stores/select/')
        self.assertEqual(response.status_code, status.HTTP_204_NO_CONTENT)
        self.assertEqual(response.cookies['selectedStoreId'].value, '')


class SeedStoresCommandTests(TestCase):
    """Test the seed_stores command"""

    def test_seed_is_idempotent(self):
        """Test running twice creates the stores once"""
        call_command('seed_stores', stdout=StringIO())
        call_command('seed_stores', stdout=StringIO())
        self.assertEqual(
            sorted(Store.objects.values_list('name', flat=True)),
            sorted(['今里店', '深江橋店', '緑橋本店']),
        )
