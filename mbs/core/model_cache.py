"""
Caching for frequently read tables: the store list and per-store customer rows.

Entries are invalidated by the post_save/post_delete receivers below, so a
stale read is only possible for the TTL when a change bypasses the ORM.
"""
from django.core.cache import cache
from django.db.models.signals import post_save, post_delete
from django.dispatch import receiver
import logging

from mbs.customers.models import Customer
from mbs.stores.models import Store

logger = logging.getLogger(__name__)

# Cache key prefixes
STORE_LIST_KEY = 'store_list:all'
CUSTOMER_ROWS_KEY_PREFIX = 'customer_rows:'

# Cache TTL (Time To Live) in seconds
STORE_LIST_CACHE_TTL = 600  # 10 minutes
CUSTOMER_ROWS_CACHE_TTL = 300  # 5 minutes


# ==================== STORE CACHING ====================

def get_cached_store_list():
    return cache.get(STORE_LIST_KEY)


def cache_store_list(rows, ttl: int = None):
    cache.set(STORE_LIST_KEY, rows, ttl or STORE_LIST_CACHE_TTL)
    logger.debug(f"Cached store list ({len(rows)} stores)")


def invalidate_store_list_cache():
    cache.delete(STORE_LIST_KEY)
    logger.debug("Invalidated store list cache")


# ==================== CUSTOMER CACHING ====================

def get_customer_rows_cache_key(store_id: int) -> str:
    """Get cache key for the customer table rows of a store"""
    return f"{CUSTOMER_ROWS_KEY_PREFIX}{store_id}"


def get_cached_customer_rows(store_id: int):
    cached_data = cache.get(get_customer_rows_cache_key(store_id))
    if cached_data is not None:
        logger.debug(f"Cache hit for customer rows of store {store_id}")
    return cached_data


def cache_customer_rows(store_id: int, rows, ttl: int = None):
    cache.set(get_customer_rows_cache_key(store_id), rows, ttl or CUSTOMER_ROWS_CACHE_TTL)
    logger.debug(f"Cached {len(rows)} customer rows for store {store_id}")


def invalidate_customer_rows_cache(store_id: int):
    cache.delete(get_customer_rows_cache_key(store_id))
    logger.debug(f"Invalidated customer rows cache for store {store_id}")


# ==================== SIGNAL HANDLERS ====================

@receiver([post_save, post_delete], sender=Store)
def invalidate_store_caches(sender, instance, **kwargs):
    """Store names appear in both the store list and the customer rows"""
    invalidate_store_list_cache()
    invalidate_customer_rows_cache(instance.pk)


@receiver([post_save, post_delete], sender=Customer)
def invalidate_customer_caches(sender, instance, **kwargs):
    invalidate_customer_rows_cache(instance.store_id)
