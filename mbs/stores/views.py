import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.shortcuts import get_object_or_404

from mbs.core.exceptions import StoreInvalid
from mbs.core.model_cache import get_cached_store_list, cache_store_list
from mbs.core.store_context import store_required, set_store_cookies, clear_store_cookies
from mbs.core.utils import create_audit_log
from .models import Store
from .serializers import StoreSerializer, StoreSelectSerializer

logger = logging.getLogger('mbs.stores')


@api_view(['GET', 'POST'])
@permission_classes([IsAuthenticated])
def store_list_create(request):
    """List stores ordered by name or create a new store"""
    if request.method == 'GET':
        cached_data = get_cached_store_list()
        if cached_data is not None:
            logger.debug("Cache hit for store list")
            return Response(cached_data)

        stores = Store.objects.all().order_by('name')
        response_data = list(StoreSerializer(stores, many=True).data)
        cache_store_list(response_data)
        return Response(response_data)
    else:
        serializer = StoreSerializer(data=request.data)
        if serializer.is_valid():
            store = serializer.save()
            logger.info(f"Store '{store.name}' created by {request.user.username}")
            create_audit_log(
                request=request,
                action='create',
                model_name='Store',
                object_id=store.id,
                object_name=store.name,
            )
            return Response(serializer.data, status=status.HTTP_201_CREATED)
        logger.warning(f"Store creation validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)


@api_view(['GET', 'PUT', 'PATCH', 'DELETE'])
@permission_classes([IsAuthenticated])
def store_detail(request, pk):
    """Retrieve, update or delete a store"""
    store = get_object_or_404(Store, pk=pk)

    if request.method == 'GET':
        serializer = StoreSerializer(store)
        return Response(serializer.data)
    elif request.method in ('PUT', 'PATCH'):
        serializer = StoreSerializer(store, data=request.data, partial=request.method == 'PATCH')
        if serializer.is_valid():
            old_name = store.name
            serializer.save()
            logger.info(f"Store {pk} updated by {request.user.username}")
            create_audit_log(
                request=request,
                action='update',
                model_name='Store',
                object_id=store.id,
                object_name=store.name,
                changes={'name': {'old': old_name, 'new': store.name}},
            )
            return Response(serializer.data)
        logger.warning(f"Store update validation failed: {serializer.errors}")
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)
    else:  # DELETE
        if store.customers.exists():
            logger.warning(f"Refused to delete store {pk} ({store.name}): it still has customers")
            return Response(
                {'error': 'The store still has customers and cannot be deleted'},
                status=status.HTTP_409_CONFLICT,
            )
        store_name = store.name
        store.delete()
        logger.info(f"Store {pk} ({store_name}) deleted by {request.user.username}")
        create_audit_log(
            request=request,
            action='delete',
            model_name='Store',
            object_id=pk,
            object_name=store_name,
        )
        return Response(status=status.HTTP_204_NO_CONTENT)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@store_required
def store_current(request):
    """The store selected by this browser"""
    return Response(StoreSerializer(request.store).data)


@api_view(['POST', 'DELETE'])
@permission_classes([IsAuthenticated])
def store_select(request):
    """Remember the chosen store in the selection cookies, or forget it"""
    if request.method == 'DELETE':
        response = Response(status=status.HTTP_204_NO_CONTENT)
        return clear_store_cookies(response)

    serializer = StoreSelectSerializer(data=request.data)
    if not serializer.is_valid():
        return Response(serializer.errors, status=status.HTTP_400_BAD_REQUEST)

    store = Store.objects.filter(pk=serializer.validated_data['store']).first()
    if store is None:
        logger.warning(f"User {request.user.username} selected unknown store {serializer.validated_data['store']}")
        return StoreInvalid().to_response()

    logger.info(f"User {request.user.username} selected store '{store.name}'")
    create_audit_log(
        request=request,
        action='store_select',
        model_name='Store',
        object_id=store.id,
        object_name=store.name,
        store=store,
    )
    response = Response(StoreSerializer(store).data)
    return set_store_cookies(response, store)
