import logging
from rest_framework import status
from rest_framework.decorators import api_view, permission_classes
from rest_framework.response import Response
from rest_framework.permissions import IsAuthenticated
from django.http import HttpResponse

from mbs.core.exceptions import NotFound
from mbs.core.listing import TableQuery
from mbs.core.store_context import store_required
from mbs.core.utils import create_audit_log
from .serializers import StatisticsSerializer
from .services import (
    get_statistics_rows, recalculate_statistics, build_statistics_csv,
    statistics_csv_filename, content_disposition,
)

logger = logging.getLogger('mbs.reports')

STATISTICS_SEARCH_FIELDS = ('customer_id', 'customer_name')
STATISTICS_SORT_FIELDS = STATISTICS_SEARCH_FIELDS + ('average_lead_time', 'total_sales', 'updated_at')


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@store_required
def statistics_list(request):
    """Per-customer statistics of the selected store"""
    query = TableQuery.from_request(
        request, STATISTICS_SEARCH_FIELDS, STATISTICS_SORT_FIELDS, columns=StatisticsSerializer.Meta.fields,
    )
    return Response(query.to_payload(get_statistics_rows(request.store)))


@api_view(['POST'])
@permission_classes([IsAuthenticated])
@store_required
def statistics_recalculate(request):
    """Rebuild the statistics of the selected store now"""
    count = recalculate_statistics(request.store)
    create_audit_log(
        request=request,
        action='statistics_recalculate',
        model_name='Statistics',
        object_id=request.store.id,
        object_name=request.store.name,
        changes={'customers': count},
    )
    return Response({'status': 'success', 'count': count}, status=status.HTTP_200_OK)


@api_view(['GET'])
@permission_classes([IsAuthenticated])
@store_required
def statistics_export(request):
    """CSV download of the searched and sorted statistics (all pages)"""
    query = TableQuery.from_request(
        request, STATISTICS_SEARCH_FIELDS, STATISTICS_SORT_FIELDS, columns=StatisticsSerializer.Meta.fields,
    )
    rows = query.filter_and_sort(get_statistics_rows(request.store))
    if not rows:
        raise NotFound('No data to export')

    filename = statistics_csv_filename()
    response = HttpResponse(build_statistics_csv(rows).encode('utf-8'), content_type='text/csv; charset=utf-8')
    response['Content-Disposition'] = content_disposition(filename)
    logger.info(f"User {request.user.username} exported {len(rows)} statistics row(s) of store '{request.store.name}'")
    create_audit_log(
        request=request,
        action='export',
        model_name='Statistics',
        object_id=request.store.id,
        object_name=filename,
        changes={'rows': len(rows)},
    )
    return response
