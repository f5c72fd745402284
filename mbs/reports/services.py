"""
Customer statistics: average lead time and cumulative sales.

Lead time of an order is the number of days from its order date to the
customer's earliest delivery on or after that date. Orders without such a
delivery do not count towards the average.
"""
import csv
import io
import logging
from bisect import bisect_left
from datetime import timedelta
from decimal import Decimal, ROUND_HALF_UP
from urllib.parse import quote

from django.conf import settings
from django.db import transaction
from django.db.models import DecimalField, ExpressionWrapper, F, Max, Sum
from django.utils import timezone

from mbs.customers.models import Customer
from mbs.deliveries.models import Delivery
from mbs.orders.models import Order, OrderDetail
from .models import Statistics
from .serializers import StatisticsSerializer

logger = logging.getLogger(__name__)

CSV_HEADERS = ['顧客ID', '顧客名', '平均リードタイム（日）', '累計売上額']
CSV_FILENAME_FORMAT = '統計情報_%Y%m%d_%H_%M_%S.csv'
UTF8_BOM = '\ufeff'


def calculate_total_sales(customer):
    total = OrderDetail.objects.active().filter(
        order__customer=customer,
        order__is_deleted=False,
    ).aggregate(
        total=Sum(ExpressionWrapper(F('unit_price') * F('quantity'), output_field=DecimalField()))
    )['total']
    return total or Decimal('0.00')


def calculate_average_lead_time(customer):
    """Mean lead time in days over orders that have a later (or same-day) delivery, else 0"""
    delivery_dates = sorted(
        Delivery.objects.active().filter(customer=customer).values_list('delivery_date', flat=True)
    )
    order_dates = Order.objects.active().filter(customer=customer).values_list('order_date', flat=True)

    lead_times = []
    for order_date in order_dates:
        index = bisect_left(delivery_dates, order_date)
        if index < len(delivery_dates):
            lead_times.append((delivery_dates[index] - order_date).days)

    if not lead_times:
        return Decimal('0.00')
    average = Decimal(sum(lead_times)) / Decimal(len(lead_times))
    return average.quantize(Decimal('0.01'), rounding=ROUND_HALF_UP)


def recalculate_statistics(store):
    """Rebuild the statistics of every active customer of ``store``; returns the number of rows written"""
    customers = list(Customer.objects.active().filter(store=store).order_by('id'))
    with transaction.atomic():
        for customer in customers:
            Statistics.objects.update_or_create(
                customer=customer,
                defaults={
                    'average_lead_time': calculate_average_lead_time(customer),
                    'total_sales': calculate_total_sales(customer),
                    'is_deleted': False,
                    'deleted_at': None,
                },
            )
        # customers deleted since the last run drop out of the report
        stale = Statistics.objects.active().filter(customer__store=store, customer__is_deleted=True)
        for statistics in stale:
            statistics.soft_delete()

    logger.info(f"Statistics recalculated for store '{store.name}': {len(customers)} customer(s)")
    return len(customers)


def statistics_are_stale(store, now=None):
    """True when the store has no statistics or the newest is older than the configured age"""
    newest = Statistics.objects.active().filter(
        customer__store=store,
        customer__is_deleted=False,
    ).aggregate(newest=Max('updated_at'))['newest']
    if newest is None:
        return True
    now = now or timezone.now()
    return now - newest > timedelta(hours=settings.MBS_STATISTICS_MAX_AGE_HOURS)


def get_statistics_rows(store):
    """Statistics rows of ``store`` ordered by customer id, recalculated first when stale"""
    if statistics_are_stale(store):
        logger.info(f"Statistics of store '{store.name}' are missing or stale, recalculating")
        recalculate_statistics(store)

    queryset = Statistics.objects.active().filter(
        customer__store=store,
        customer__is_deleted=False,
    ).select_related('customer').order_by('customer_id')
    return [dict(row) for row in StatisticsSerializer(queryset, many=True).data]


def format_lead_time(value):
    return str(Decimal(str(value)).quantize(Decimal('0.1'), rounding=ROUND_HALF_UP))


def format_sales(value):
    return format(Decimal(str(value)).normalize(), 'f')


def build_statistics_csv(rows):
    """UTF-8 (with BOM) CSV text of the statistics rows"""
    output = io.StringIO()
    writer = csv.writer(output, quoting=csv.QUOTE_MINIMAL, lineterminator='\n')
    writer.writerow(CSV_HEADERS)
    for row in rows:
        writer.writerow([
            row['customer_id'],
            row['customer_name'],
            format_lead_time(row['average_lead_time']),
            format_sales(row['total_sales']),
        ])
    return UTF8_BOM + output.getvalue().rstrip('\n')


def statistics_csv_filename(now=None):
    now = timezone.localtime(now)
    return now.strftime(CSV_FILENAME_FORMAT)


def content_disposition(filename):
    """Attachment header with an ASCII fallback and the RFC 5987 UTF-8 name"""
    return f"attachment; filename=\"statistics.csv\"; filename*=UTF-8''{quote(filename)}"
