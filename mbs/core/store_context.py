"""
Selected-store context.

Most pages work inside one store. The browser keeps the choice in the
``selectedStoreId`` / ``selectedStoreName`` cookies; API clients without a
cookie jar may send the ``X-Store-Id`` header instead.
"""
import logging
from functools import wraps
from urllib.parse import quote, unquote

from django.conf import settings

from .exceptions import StoreRequired, StoreInvalid, StoreSelectionError

logger = logging.getLogger(__name__)

SELECTED_STORE_ID_COOKIE = 'selectedStoreId'
SELECTED_STORE_NAME_COOKIE = 'selectedStoreName'
STORE_ID_HEADER = 'HTTP_X_STORE_ID'


def get_selected_store_id(request):
    """Return the raw selected store id from the cookie or header, or None"""
    store_id = request.COOKIES.get(SELECTED_STORE_ID_COOKIE) or request.META.get(STORE_ID_HEADER)
    if store_id is None:
        return None
    store_id = str(store_id).strip()
    return store_id or None


def get_selected_store_name(request):
    name = request.COOKIES.get(SELECTED_STORE_NAME_COOKIE)
    return unquote(name) if name else None


def resolve_store(request):
    """Return the selected Store or raise StoreRequired / StoreInvalid"""
    from mbs.stores.models import Store

    store_id = get_selected_store_id(request)
    if not store_id:
        raise StoreRequired()
    try:
        return Store.objects.get(pk=int(store_id))
    except (ValueError, Store.DoesNotExist):
        raise StoreInvalid()


def store_required(view_func):
    """Attach the selected store to ``request.store`` or answer with the selection error"""
    @wraps(view_func)
    def wrapper(request, *args, **kwargs):
        try:
            request.store = resolve_store(request)
        except StoreSelectionError as e:
            logger.warning(f"Store selection rejected on {request.path}: {e.code}")
            return e.to_response()
        return view_func(request, *args, **kwargs)
    return wrapper


def set_store_cookies(response, store):
    max_age = settings.MBS_STORE_COOKIE_MAX_AGE
    response.set_cookie(SELECTED_STORE_ID_COOKIE, str(store.id), max_age=max_age, samesite='Lax')
    response.set_cookie(SELECTED_STORE_NAME_COOKIE, quote(store.name), max_age=max_age, samesite='Lax')
    return response


def clear_store_cookies(response):
    response.delete_cookie(SELECTED_STORE_ID_COOKIE, samesite='Lax')
    response.delete_cookie(SELECTED_STORE_NAME_COOKIE, samesite='Lax')
    return response
