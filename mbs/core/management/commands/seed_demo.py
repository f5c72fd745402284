"""
Management command to load demo customers, orders and deliveries
Usage: python manage.py seed_demo [--flush]
"""
from datetime import date, timedelta
from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from mbs.customers.models import Customer
from mbs.deliveries.models import Delivery, DeliveryDetail, DeliveryAllocation
from mbs.deliveries.services import create_delivery
from mbs.orders.models import Order, OrderDetail
from mbs.orders.services import create_order
from mbs.reports.models import Statistics
from mbs.reports.services import recalculate_statistics
from mbs.stores.models import Store

DEMO_STORE_NAME = 'デモ店'

DEMO_CUSTOMERS = [
    {'name': '大阪商事株式会社', 'contact_person': '山田太郎', 'phone': '06-1234-5678', 'address': '大阪府大阪市東成区大今里1-1-1'},
    {'name': '深江工業', 'contact_person': '佐藤花子', 'phone': '06-2345-6789', 'address': '大阪府大阪市東成区深江北2-2-2'},
    {'name': '緑橋書店', 'contact_person': '鈴木一郎', 'phone': '06-3456-7890', 'address': '大阪府大阪市東成区東中本3-3-3'},
]

DEMO_PRODUCTS = [
    ('ボールペン（黒）', Decimal('120'), 50),
    ('A4コピー用紙', Decimal('550'), 20),
    ('クリアファイル', Decimal('80'), 100),
]

# delete order; children before parents
FLUSH_MODELS = [
    ('Delivery Allocations', DeliveryAllocation),
    ('Delivery Details', DeliveryDetail),
    ('Deliveries', Delivery),
    ('Order Details', OrderDetail),
    ('Orders', Order),
    ('Statistics', Statistics),
    ('Customers', Customer),
    ('Stores', Store),
]


class Command(BaseCommand):
    help = "Creates a demo store with customers, orders and deliveries"

    def add_arguments(self, parser):
        parser.add_argument(
            '--flush',
            action='store_true',
            help='Delete all business data (not users or audit logs) first',
        )

    def flush(self):
        self.stdout.write(self.style.WARNING("Deleting existing business data..."))
        for label, model in FLUSH_MODELS:
            count = model.objects.count()
            model.objects.all().delete()
            self.stdout.write(self.style.SUCCESS(f"  ✓ {label} deleted ({count})"))

    def handle(self, *args, **options):
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(self.style.SUCCESS("LOADING DEMO DATA"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))

        with transaction.atomic():
            if options['flush']:
                self.flush()

            store, _ = Store.objects.get_or_create(name=DEMO_STORE_NAME)
            customers = []
            for values in DEMO_CUSTOMERS:
                customer = Customer.objects.create(id=Customer.next_id(), store=store, **values)
                customers.append(customer)
                self.stdout.write(self.style.SUCCESS(f"  ✓ Customer {customer.id}: {customer.name}"))

            today = date.today()
            order_count = 0
            delivery_count = 0
            for offset, customer in enumerate(customers):
                order_date = today - timedelta(days=30 - offset * 5)
                order = create_order(
                    store,
                    customer=customer.id,
                    order_date=order_date,
                    details=[
                        {'product_name': name, 'unit_price': price, 'quantity': quantity}
                        for name, price, quantity in DEMO_PRODUCTS
                    ],
                    note='デモ注文',
                )
                order_count += 1
                self.stdout.write(self.style.SUCCESS(f"  ✓ Order {order.id} for {customer.name}"))

                # first line fully, second line half; third stays open
                lines = list(order.details.active().order_by('id'))
                delivery = create_delivery(
                    store,
                    customer=customer.id,
                    delivery_date=order_date + timedelta(days=3 + offset),
                    allocations=[
                        {'order_detail': lines[0].id, 'quantity': lines[0].quantity},
                        {'order_detail': lines[1].id, 'quantity': lines[1].quantity // 2},
                    ],
                    note='デモ納品',
                )
                delivery_count += 1
                self.stdout.write(self.style.SUCCESS(f"  ✓ Delivery {delivery.id} for {customer.name}"))

            recalculate_statistics(store)

        self.stdout.write(self.style.SUCCESS("\n================================================================================"))
        self.stdout.write(self.style.SUCCESS("SUMMARY"))
        self.stdout.write(self.style.SUCCESS("================================================================================"))
        self.stdout.write(f"Store: {store.name} (id {store.id})")
        self.stdout.write(f"Customers Created: {len(customers)}")
        self.stdout.write(f"Orders Created: {order_count}")
        self.stdout.write(f"Deliveries Created: {delivery_count}")
        self.stdout.write(self.style.SUCCESS("================================================================================"))
