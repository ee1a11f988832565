# products/tests/test_availability.py

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.test import TestCase
from django.urls import reverse
from django.utils import timezone
from rest_framework.test import APITestCase

from products.models import ProductVariant
from products.services.availability import (
    IN_STOCK,
    OUT_OF_STOCK,
    StockSnapshot,
    compute_availability,
    compute_availability_many,
)
from products.services.stock_fifo import allocate
from purchases.services.receiving_service import (
    create_receipt,
    finish_receipt,
    record_receipt_line,
)
from sales.models import Order, OrderLine, OrderStatus

User = get_user_model()


def receive(variant, qty, cost="1.00", *, finish=True, received_at=None):
    receipt = create_receipt()
    batch = record_receipt_line(
        receipt_id=receipt.pk,
        variant=variant,
        quantity=qty,
        unit_cost=cost,
        received_at=received_at,
    )
    if finish:
        finish_receipt(receipt_id=receipt.pk)
    return batch


def order_with_line(variant, qty, status):
    order = Order.objects.create(status=status)
    OrderLine.objects.create(order=order, product_variant=variant, quantity=qty, sale_price="5.00")
    return order


class StockAvailabilityTests(TestCase):
    """
    Stock availability.

    GUARANTEES:
    - total_remaining only counts finalized batches
    - booked only counts orders in a booking phase
    - available = total_remaining - booked (may go negative)
    """

    def setUp(self):
        self.variant = ProductVariant.objects.create(sku="MUG-1", name="Mug")

    def test_booking_and_completed_orders(self):
        now = timezone.now()
        receive(self.variant, 10, received_at=now - timedelta(days=2))
        receive(self.variant, 5, received_at=now - timedelta(days=1))

        order_with_line(self.variant, 4, OrderStatus.DELIVERING)

        # completed order: its quantity was deducted from batches, not booked
        completed = order_with_line(self.variant, 2, OrderStatus.PAID_PROCESSING)
        allocate(variant=self.variant, quantity=2)
        Order.objects.filter(pk=completed.pk).update(status=OrderStatus.COMPLETED)
        receive(self.variant, 2)

        snap = compute_availability(self.variant)

        self.assertEqual(snap.total_remaining, 15)
        self.assertEqual(snap.booked, 4)
        self.assertEqual(snap.available, 11)
        self.assertEqual(snap.status_tag, IN_STOCK)

    def test_every_booking_phase_counts(self):
        receive(self.variant, 100)
        booking = [
            OrderStatus.CONFIRMED_COD,
            OrderStatus.PAID_PROCESSING,
            OrderStatus.WAITING_DEPOSIT,
            OrderStatus.DEPOSIT_PAID,
            OrderStatus.DELIVERING,
            OrderStatus.WAITING_PICKUP,
        ]
        for status in booking:
            order_with_line(self.variant, 1, status)
        for status in (
            OrderStatus.PENDING,
            OrderStatus.CANCELLED,
            OrderStatus.REFUNDING,
            OrderStatus.REFUNDED,
            OrderStatus.COMPLETED,
        ):
            order_with_line(self.variant, 50, status)

        self.assertEqual(compute_availability(self.variant).booked, len(booking))

    def test_unfinished_receipts_do_not_count(self):
        receive(self.variant, 7, finish=False)

        snap = compute_availability(self.variant)

        self.assertEqual(snap.total_remaining, 0)
        self.assertEqual(snap.status_tag, OUT_OF_STOCK)

    def test_depleted_batches_contribute_zero(self):
        receive(self.variant, 3)
        allocate(variant=self.variant, quantity=3)

        snap = compute_availability(self.variant)

        self.assertEqual(snap.total_remaining, 0)
        self.assertFalse(snap.is_in_stock)

    def test_over_booked_goes_negative(self):
        receive(self.variant, 2)
        order_with_line(self.variant, 5, OrderStatus.CONFIRMED_COD)

        snap = compute_availability(self.variant)

        self.assertEqual(snap.available, -3)
        self.assertEqual(snap.status_tag, OUT_OF_STOCK)
        self.assertFalse(snap.can_fulfill(1))

    def test_exactly_zero_is_out_of_stock(self):
        receive(self.variant, 2)
        order_with_line(self.variant, 2, OrderStatus.WAITING_PICKUP)

        self.assertEqual(compute_availability(self.variant).status_tag, OUT_OF_STOCK)

    def test_accepts_id_or_instance(self):
        receive(self.variant, 4)

        by_obj = compute_availability(self.variant)
        by_str = compute_availability(str(self.variant.pk))

        self.assertEqual(by_obj, by_str)

    def test_many_variants_at_once(self):
        other = ProductVariant.objects.create(sku="MUG-2", name="Mug 2")
        empty = ProductVariant.objects.create(sku="MUG-3", name="Mug 3")
        receive(self.variant, 4)
        receive(other, 9)
        order_with_line(other, 3, OrderStatus.DEPOSIT_PAID)

        snaps = compute_availability_many([self.variant.pk, other, str(empty.pk)])

        self.assertEqual(snaps[self.variant.pk].available, 4)
        self.assertEqual(snaps[other.pk].available, 6)
        self.assertEqual(snaps[empty.pk], StockSnapshot(variant_id=empty.pk, total_remaining=0, booked=0))
        self.assertEqual(compute_availability_many([]), {})

    def test_as_dict_payload(self):
        snap = StockSnapshot(variant_id="abc", total_remaining=3, booked=1)

        self.assertEqual(snap.as_dict(), {
            "variant_id": "abc",
            "total_remaining": 3,
            "booked": 1,
            "available": 2,
            "status_tag": IN_STOCK,
        })


class VariantAvailabilityApiTests(APITestCase):
    def setUp(self):
        self.user = User.objects.create_user(username="viewer", password="pass")
        self.variant = ProductVariant.objects.create(sku="CAP-1", name="Cap")
        receive(self.variant, 6, cost=Decimal("2.00"))

    def test_requires_authentication(self):
        url = reverse("product-variant-availability", args=[self.variant.pk])
        response = self.client.get(url)
        self.assertEqual(response.status_code, 401)

    def test_returns_snapshot(self):
        self.client.force_authenticate(self.user)
        url = reverse("product-variant-availability", args=[self.variant.pk])

        response = self.client.get(url)

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["available"], 6)
        self.assertEqual(response.data["status_tag"], IN_STOCK)

    def test_unknown_variant_is_404(self):
        self.client.force_authenticate(self.user)
        url = reverse("product-variant-availability", args=[uuid.uuid4()])

        self.assertEqual(self.client.get(url).status_code, 404)


class ProductVariantAdminTests(TestCase):
    """
    GUARANTEES:
    - The variant changelist resolves availability for the whole page in one grouped lookup
    """

    def setUp(self):
        admin_user = User.objects.create_superuser(
            username="root", password="pass", email="root@example.com"
        )
        self.client.force_login(admin_user)

    def test_changelist_uses_grouped_availability(self):
        for i in range(3):
            variant = ProductVariant.objects.create(sku=f"ADM-{i}", name=f"Admin {i}")
            receive(variant, 5 + i)

        with mock.patch("products.admin.compute_availability") as single, mock.patch(
            "products.admin.compute_availability_many", wraps=compute_availability_many
        ) as many:
            response = self.client.get(reverse("admin:products_productvariant_changelist"))

        self.assertEqual(response.status_code, 200)
        single.assert_not_called()
        self.assertEqual(many.call_count, 1)
        self.assertContains(response, '<td class="field-available_stock">7</td>', html=True)
