from decimal import Decimal

from django.core.management.base import BaseCommand
from django.db import transaction

from products.models import ProductVariant
from purchases.services.receiving_service import (
    create_receipt,
    finish_receipt,
    record_receipt_line,
)
from sales.models import Order, OrderLine


class Command(BaseCommand):
    help = "Seed product variants, two finished receipts (FIFO lots) and a pending order"

    def add_arguments(self, parser):
        parser.add_argument(
            "--no-order",
            action="store_true",
            help="Only seed variants and stock; skip the demo order.",
        )

    @transaction.atomic
    def handle(self, *args, **options):
        self.stdout.write(self.style.WARNING("Seeding variants and stock..."))

        # -------------------------------
        # VARIANTS
        # -------------------------------
        variants_data = [
            ("TSHIRT-BLK-M", "T-shirt black M", Decimal("10.00")),
            ("TSHIRT-BLK-L", "T-shirt black L", Decimal("10.50")),
            ("MUG-WHT", "Mug white 300ml", Decimal("3.20")),
        ]

        variants = []
        for sku, name, _ in variants_data:
            variant, _created = ProductVariant.objects.get_or_create(
                sku=sku,
                defaults={"name": name},
            )
            variants.append(variant)

        # -------------------------------
        # RECEIPTS (two lots per variant, second one pricier)
        # -------------------------------
        for lot, markup in enumerate((Decimal("0.00"), Decimal("2.00")), start=1):
            receipt = create_receipt(reference=f"SEED-LOT-{lot}", notes="seed_inventory")
            for variant, (_, _, base_cost) in zip(variants, variants_data):
                record_receipt_line(
                    receipt_id=receipt.pk,
                    variant=variant,
                    quantity=10 * lot,
                    unit_cost=base_cost + markup,
                )
            finish_receipt(receipt_id=receipt.pk)

        # -------------------------------
        # DEMO ORDER
        # -------------------------------
        if not options["no_order"]:
            order = Order.objects.create()
            OrderLine.objects.create(
                order=order,
                product_variant=variants[0],
                quantity=12,
                sale_price=Decimal("25.00"),
            )
            self.stdout.write(f"Pending order {order.order_no} created.")

        self.stdout.write(self.style.SUCCESS("Variants and stock seeded successfully."))
