# sales/tests/test_fulfillment.py

import uuid
from datetime import timedelta
from decimal import Decimal
from unittest import mock

from django.contrib.auth import get_user_model
from django.db import DatabaseError, OperationalError
from django.test import TestCase, override_settings
from django.utils import timezone

from products.models import BatchAllocation, ProductVariant, StockBatch
from products.services import batch_ledger
from products.services.stock_fifo import allocate
from purchases.services.receiving_service import (
    create_receipt,
    finish_receipt,
    record_receipt_line,
)
from sales.models import Order, OrderLine, OrderStatus
from sales.services.fulfillment_orchestrator import (
    ConcurrencyConflict,
    InsufficientStock,
    InvalidTransition,
    LineAlreadyCosted,
    OrderNotFound,
    PersistenceFailure,
    complete_order,
)

User = get_user_model()


class DriverError(Exception):
    """Stands in for the psycopg error Django chains under OperationalError."""

    def __init__(self, sqlstate):
        super().__init__(sqlstate)
        self.sqlstate = sqlstate


class FulfillmentTestMixin:
    def setUp(self):
        self.user = User.objects.create_user(username="staff", password="pass", is_staff=True)
        self.variant = ProductVariant.objects.create(sku="HOOD-S", name="Hoodie S")
        self.t0 = timezone.now() - timedelta(days=7)

        receipt = create_receipt(reference="PO-1")
        self.first = record_receipt_line(
            receipt_id=receipt.pk,
            variant=self.variant,
            quantity=3,
            unit_cost="10.00",
            received_at=self.t0,
        )
        self.second = record_receipt_line(
            receipt_id=receipt.pk,
            variant=self.variant,
            quantity=5,
            unit_cost="12.00",
            received_at=self.t0 + timedelta(days=1),
        )
        finish_receipt(receipt_id=receipt.pk)

    def make_order(self, *quantities, status=OrderStatus.PAID_PROCESSING, variant=None):
        order = Order.objects.create(status=status)
        for i, qty in enumerate(quantities):
            OrderLine.objects.create(
                order=order,
                product_variant=variant or self.variant,
                quantity=qty,
                sale_price=Decimal("20.00"),
                created_at=self.t0 + timedelta(seconds=i),
            )
        return order

    def remaining(self, batch):
        return StockBatch.objects.get(pk=batch.pk).quantity_remaining

    def stock(self, variant, quantity, unit_cost):
        receipt = create_receipt()
        batch = record_receipt_line(
            receipt_id=receipt.pk,
            variant=variant,
            quantity=quantity,
            unit_cost=unit_cost,
            received_at=self.t0,
        )
        finish_receipt(receipt_id=receipt.pk)
        return batch


class CompleteOrderTests(FulfillmentTestMixin, TestCase):
    """
    Order completion.

    GUARANTEES:
    - Every line gets its FIFO unit cost exactly once
    - Batch decrements, line costs and the status change commit together
    - A second completion never deducts stock again
    """

    def test_completion_assigns_weighted_cost(self):
        order = self.make_order(6)

        done = complete_order(order_id=order.pk, user=self.user)

        line = done.lines.get()
        self.assertEqual(done.status, OrderStatus.COMPLETED)
        self.assertEqual(line.cost_price, Decimal("11.00"))
        self.assertEqual(self.remaining(self.first), 0)
        self.assertEqual(self.remaining(self.second), 2)
        self.assertEqual(done.completed_by, self.user)
        self.assertIsNotNone(done.completed_at)
        self.assertEqual(done.last_status_changed_at, done.completed_at)

    def test_lines_are_allocated_in_creation_order(self):
        order = self.make_order(2, 4)

        complete_order(order_id=order.pk)

        first_line, second_line = order.lines.order_by("created_at", "id")
        # line 1 takes 2@10; line 2 takes 1@10 + 3@12
        self.assertEqual(first_line.cost_price, Decimal("10.00"))
        self.assertEqual(second_line.cost_price, Decimal("11.50"))
        self.assertEqual(BatchAllocation.objects.filter(order_line=second_line).count(), 2)

    def test_second_completion_is_rejected_without_touching_stock(self):
        order = self.make_order(6)
        complete_order(order_id=order.pk)

        with self.assertRaises(InvalidTransition):
            complete_order(order_id=order.pk)

        self.assertEqual(self.remaining(self.first), 0)
        self.assertEqual(self.remaining(self.second), 2)
        self.assertEqual(BatchAllocation.objects.count(), 2)
        self.assertEqual(order.lines.get().cost_price, Decimal("11.00"))

    def test_illegal_source_status_is_rejected(self):
        order = self.make_order(1, status=OrderStatus.PENDING)

        with self.assertRaises(InvalidTransition) as ctx:
            complete_order(order_id=order.pk)

        self.assertNotIn("completed", ctx.exception.allowed)
        self.assertEqual(self.remaining(self.first), 3)

    def test_every_completable_status(self):
        for status in (
            OrderStatus.CONFIRMED_COD,
            OrderStatus.PAID_PROCESSING,
            OrderStatus.DEPOSIT_PAID,
            OrderStatus.DELIVERING,
            OrderStatus.WAITING_PICKUP,
        ):
            with self.subTest(status=status):
                order = self.make_order(1, status=status)
                self.assertEqual(complete_order(order_id=order.pk).status, OrderStatus.COMPLETED)

    def test_unknown_order(self):
        with self.assertRaises(OrderNotFound):
            complete_order(order_id=uuid.uuid4())

    def test_malformed_order_id_is_not_found(self):
        with self.assertRaises(OrderNotFound):
            complete_order(order_id="abc")

    def test_shortfall_rolls_back_every_line(self):
        order = self.make_order(5, 4)

        with self.assertRaises(InsufficientStock):
            complete_order(order_id=order.pk)

        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PAID_PROCESSING)
        self.assertEqual(self.remaining(self.first), 3)
        self.assertEqual(self.remaining(self.second), 5)
        self.assertFalse(order.lines.exclude(cost_price=None).exists())
        self.assertEqual(BatchAllocation.objects.count(), 0)

    def test_partial_policy_completes_short(self):
        order = self.make_order(10)

        done = complete_order(order_id=order.pk, policy="partial")

        # 3@10 + 5@12 over the 8 units actually fulfilled
        self.assertEqual(done.lines.get().cost_price, Decimal("11.25"))
        self.assertEqual(self.remaining(self.second), 0)

    def test_partial_policy_with_no_stock_leaves_cost_unset(self):
        empty = ProductVariant.objects.create(sku="HOOD-XL", name="Hoodie XL")
        order = self.make_order(2, variant=empty)

        done = complete_order(order_id=order.pk, policy="partial")

        self.assertEqual(done.status, OrderStatus.COMPLETED)
        self.assertIsNone(done.lines.get().cost_price)
        self.assertFalse(BatchAllocation.objects.exists())

    def test_lines_are_allocated_in_variant_order(self):
        other = ProductVariant.objects.create(sku="HOOD-M", name="Hoodie M")
        self.stock(other, 4, "15.00")
        low, high = sorted([self.variant, other], key=lambda v: v.pk)

        order = Order.objects.create(status=OrderStatus.PAID_PROCESSING)
        # the higher variant id is on the older line
        for i, variant in enumerate((high, low)):
            OrderLine.objects.create(
                order=order,
                product_variant=variant,
                quantity=2,
                sale_price=Decimal("20.00"),
                created_at=self.t0 + timedelta(seconds=i),
            )

        with mock.patch(
            "sales.services.fulfillment_orchestrator.allocate", wraps=allocate
        ) as patched:
            done = complete_order(order_id=order.pk)

        called = [c.kwargs["variant"] for c in patched.call_args_list]
        self.assertEqual(called, [low.pk, high.pk])
        self.assertEqual(done.status, OrderStatus.COMPLETED)
        self.assertEqual(
            done.lines.get(product_variant=other).cost_price, Decimal("15.00")
        )

    def test_lines_without_variant_are_skipped(self):
        order = self.make_order(2)
        OrderLine.objects.create(order=order, product_variant=None, quantity=1, sale_price="1.00")

        done = complete_order(order_id=order.pk)

        self.assertEqual(done.status, OrderStatus.COMPLETED)
        self.assertIsNone(done.lines.get(product_variant=None).cost_price)

    def test_pre_costed_line_is_refused(self):
        order = self.make_order(1)
        OrderLine.objects.filter(order=order).update(cost_price=Decimal("1.00"))

        with self.assertRaises(LineAlreadyCosted):
            complete_order(order_id=order.pk)

        self.assertEqual(self.remaining(self.first), 3)

    def test_anonymous_user_is_not_recorded(self):
        order = self.make_order(1)

        done = complete_order(order_id=order.pk, user=None)

        self.assertIsNone(done.completed_by)

    def test_completed_order_status_is_frozen_at_model_level(self):
        order = complete_order(order_id=self.make_order(1).pk)
        order.status = OrderStatus.PENDING

        with self.assertRaises(ValueError):
            order.save()


class CompleteOrderFailureTests(FulfillmentTestMixin, TestCase):
    """
    GUARANTEES:
    - ConcurrencyConflict retries the whole attempt, bounded
    - Storage errors surface as PersistenceFailure with the cause chained
    """

    def test_conflict_is_retried_then_succeeds(self):
        order = self.make_order(6)
        real = batch_ledger.save_batch_decrement
        calls = {"n": 0}

        def flaky(*, batch, take):
            calls["n"] += 1
            if calls["n"] == 1:
                raise ConcurrencyConflict("lost race")
            return real(batch=batch, take=take)

        with mock.patch("products.services.stock_fifo.save_batch_decrement", side_effect=flaky):
            done = complete_order(order_id=order.pk, max_retries=2)

        self.assertEqual(done.status, OrderStatus.COMPLETED)
        self.assertEqual(done.lines.get().cost_price, Decimal("11.00"))
        self.assertEqual(self.remaining(self.first), 0)
        self.assertEqual(self.remaining(self.second), 2)
        self.assertEqual(BatchAllocation.objects.count(), 2)

    def test_deadlock_is_retried_as_conflict(self):
        order = self.make_order(6)
        real = batch_ledger.save_batch_decrement
        deadlock = OperationalError("deadlock detected")
        deadlock.__cause__ = DriverError("40P01")
        calls = {"n": 0}

        def deadlocked_once(*, batch, take):
            calls["n"] += 1
            if calls["n"] == 1:
                raise deadlock
            return real(batch=batch, take=take)

        with mock.patch(
            "products.services.stock_fifo.save_batch_decrement", side_effect=deadlocked_once
        ):
            done = complete_order(order_id=order.pk, max_retries=1)

        self.assertEqual(done.status, OrderStatus.COMPLETED)
        self.assertEqual(done.lines.get().cost_price, Decimal("11.00"))
        self.assertEqual(self.remaining(self.first), 0)
        self.assertEqual(BatchAllocation.objects.count(), 2)

    def test_serialization_failure_exhausts_as_conflict(self):
        order = self.make_order(2)
        failure = OperationalError("could not serialize access")
        failure.pgcode = "40001"

        with mock.patch(
            "products.services.stock_fifo.save_batch_decrement", side_effect=failure
        ) as patched:
            with self.assertRaises(ConcurrencyConflict) as ctx:
                complete_order(order_id=order.pk, max_retries=1)

        self.assertEqual(patched.call_count, 2)
        self.assertIs(ctx.exception.__cause__, failure)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PAID_PROCESSING)

    @override_settings(FULFILLMENT_MAX_RETRIES=1)
    def test_conflict_surfaces_when_retries_exhausted(self):
        order = self.make_order(2)

        with mock.patch(
            "products.services.stock_fifo.save_batch_decrement",
            side_effect=ConcurrencyConflict("always"),
        ) as patched:
            with self.assertRaises(ConcurrencyConflict):
                complete_order(order_id=order.pk)

        self.assertEqual(patched.call_count, 2)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PAID_PROCESSING)
        self.assertIsNone(order.lines.get().cost_price)

    def test_status_race_is_a_conflict(self):
        order = self.make_order(1)
        real_filter = Order.objects.filter

        def racing_filter(*args, **kwargs):
            # another writer moved the order before our conditional update
            if "status" in kwargs:
                Order.objects.all().filter(pk=order.pk).update(
                    status=OrderStatus.DELIVERING
                )
            return real_filter(*args, **kwargs)

        with mock.patch.object(Order.objects, "filter", side_effect=racing_filter):
            with self.assertRaises(ConcurrencyConflict):
                complete_order(order_id=order.pk, max_retries=0)

        self.assertEqual(self.remaining(self.first), 3)

    def test_database_error_becomes_persistence_failure(self):
        order = self.make_order(1)

        with mock.patch(
            "products.services.stock_fifo.save_batch_decrement",
            side_effect=DatabaseError("disk full"),
        ):
            with self.assertLogs("sales.services.fulfillment_orchestrator", level="ERROR"):
                with self.assertRaises(PersistenceFailure) as ctx:
                    complete_order(order_id=order.pk)

        self.assertIsInstance(ctx.exception.__cause__, DatabaseError)
        order.refresh_from_db()
        self.assertEqual(order.status, OrderStatus.PAID_PROCESSING)

    def test_negative_retry_budget_is_rejected(self):
        with self.assertRaises(ValueError):
            complete_order(order_id=self.make_order(1).pk, max_retries=-1)
