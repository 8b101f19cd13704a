# orders/tests/test_status_updates.py

import uuid
from datetime import date
from io import StringIO

from django.core.management import call_command
from django.test import TestCase, TransactionTestCase

from orders.models import Order, Payment
from orders.services.order_lifecycle import (
    InvalidOrderTransitionError,
    OrderNotCancellableError,
)
from orders.services.status_updates import (
    InvalidEditStateError,
    OptimisticStatusEdit,
    OrderNotDeletableError,
    OrderNotFoundError,
    cancel_order,
    delete_order,
    orders_for_payment,
    set_order_status,
    set_order_status_bulk,
)

from .helpers import make_customer, make_order, make_product


class SetOrderStatusTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.product = make_product("SKU-1", price=100, stock=5)
        self.order = make_order(self.customer, lines=[(self.product, 2, 100)])

    def test_sets_status_and_tracking(self):
        order = set_order_status(
            order_id=self.order.id,
            status="SHIPPED",
            tracking_number="TRK-1",
            estimated_delivery=date(2030, 1, 2),
        )

        order.refresh_from_db()
        self.assertEqual(order.status, Order.STATUS_SHIPPED)
        self.assertEqual(order.tracking_number, "TRK-1")
        self.assertEqual(order.estimated_delivery, date(2030, 1, 2))

    def test_same_status_is_noop(self):
        order = set_order_status(order_id=self.order.id, status=Order.STATUS_ORDERED)
        self.assertEqual(order.status, Order.STATUS_ORDERED)

    def test_cancel_restores_stock_once(self):
        set_order_status(order_id=self.order.id, status=Order.STATUS_CANCELLED)
        set_order_status(order_id=self.order.id, status=Order.STATUS_CANCELLED)

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 7)

    def test_terminal_order_rejected(self):
        set_order_status(order_id=self.order.id, status=Order.STATUS_DELIVERED)

        with self.assertRaises(InvalidOrderTransitionError):
            set_order_status(order_id=self.order.id, status=Order.STATUS_PROCESSING)

    def test_unknown_order(self):
        with self.assertRaises(OrderNotFoundError):
            set_order_status(order_id=uuid.uuid4(), status=Order.STATUS_SHIPPED)


class CustomerCancelTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.product = make_product("SKU-1", stock=5)
        self.order = make_order(self.customer, lines=[(self.product, 3, 100)])

    def test_owner_can_cancel_before_shipment(self):
        order = cancel_order(order_id=self.order.id, customer=self.customer)

        self.assertEqual(order.status, Order.STATUS_CANCELLED)
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 8)

    def test_other_customer_sees_not_found(self):
        stranger = make_customer("stranger@example.com")
        with self.assertRaises(OrderNotFoundError):
            cancel_order(order_id=self.order.id, customer=stranger)

    def test_shipped_delivered_cancelled_rejected(self):
        for status in (Order.STATUS_SHIPPED, Order.STATUS_DELIVERED, Order.STATUS_CANCELLED):
            Order.objects.filter(id=self.order.id).update(status=status)
            with self.assertRaises(OrderNotCancellableError):
                cancel_order(order_id=self.order.id, customer=self.customer)


class DeleteOrderTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.product = make_product("SKU-1")

    def test_only_cancelled_orders_can_be_deleted(self):
        order = make_order(self.customer, lines=[(self.product, 1, 100)])
        with self.assertRaises(OrderNotDeletableError):
            delete_order(order_id=order.id)
        self.assertTrue(Order.objects.filter(id=order.id).exists())

    def test_delete_keeps_shared_payment(self):
        first = make_order(self.customer, lines=[(self.product, 1, 100)], payment_amount=300)
        second = make_order(self.customer, lines=[(self.product, 2, 100)], payment=first.payment)
        payment = first.payment

        for order in (first, second):
            Order.objects.filter(id=order.id).update(status=Order.STATUS_CANCELLED)

        delete_order(order_id=first.id)
        self.assertEqual(list(orders_for_payment(payment)), [second])

        delete_order(order_id=second.id)
        self.assertTrue(Payment.objects.filter(id=payment.id).exists())
        self.assertEqual(orders_for_payment(payment).count(), 0)


class OptimisticStatusEditTests(TestCase):
    def test_commit_replaces_with_server_truth(self):
        view = {"o1": Order.STATUS_ORDERED}
        edit = OptimisticStatusEdit(order_id="o1", view=view)

        edit.begin(Order.STATUS_CONFIRMED)
        self.assertEqual(view["o1"], Order.STATUS_CONFIRMED)
        self.assertEqual(edit.state, OptimisticStatusEdit.PENDING)

        edit.commit(Order.STATUS_PROCESSING)
        self.assertEqual(view["o1"], Order.STATUS_PROCESSING)
        self.assertEqual(edit.state, OptimisticStatusEdit.COMMITTED)

    def test_rollback_restores_captured_value_not_current_view(self):
        view = {"o1": Order.STATUS_ORDERED}
        edit = OptimisticStatusEdit(order_id="o1", view=view)

        edit.begin(Order.STATUS_SHIPPED)
        view["o1"] = Order.STATUS_PROCESSING  # changed by another operation meanwhile
        edit.rollback()

        self.assertEqual(view["o1"], Order.STATUS_ORDERED)
        self.assertEqual(edit.state, OptimisticStatusEdit.ROLLED_BACK)

    def test_rollback_of_unknown_entry_removes_it(self):
        view = {}
        edit = OptimisticStatusEdit(order_id="o1", view=view)
        edit.begin(Order.STATUS_SHIPPED)
        edit.rollback()
        self.assertNotIn("o1", view)
        self.assertIsNone(edit.previous_status)

    def test_illegal_phase_order(self):
        edit = OptimisticStatusEdit(order_id="o1", view={})
        with self.assertRaises(InvalidEditStateError):
            edit.commit(Order.STATUS_SHIPPED)

        edit.begin(Order.STATUS_SHIPPED)
        edit.commit(Order.STATUS_SHIPPED)
        with self.assertRaises(InvalidEditStateError):
            edit.rollback()


class BulkStatusTests(TestCase):
    """
    GUARANTEES:
    - Partial success is reported, not raised
    - Failed orders keep their prior status (database and view)
    """

    def setUp(self):
        self.customer = make_customer()
        self.product = make_product("SKU-1")

        self.open_orders = [make_order(self.customer, lines=[(self.product, 1, 100)]) for _ in range(3)]
        self.delivered = [
            make_order(self.customer, status=Order.STATUS_DELIVERED, lines=[(self.product, 1, 100)])
            for _ in range(2)
        ]
        self.all_ids = [o.id for o in self.open_orders + self.delivered]

    def test_partial_success(self):
        result = set_order_status_bulk(order_ids=self.all_ids, status=Order.STATUS_SHIPPED)

        self.assertEqual(result.requested, 5)
        self.assertEqual(result.success_count, 3)
        self.assertEqual(len(result.failures), 2)
        self.assertEqual(result.summary, "3 of 5 updated")

        failed_ids = {f.order_id for f in result.failures}
        self.assertEqual(failed_ids, {str(o.id) for o in self.delivered})

        for order in self.delivered:
            order.refresh_from_db()
            self.assertEqual(order.status, Order.STATUS_DELIVERED)
            self.assertEqual(result.view[str(order.id)], Order.STATUS_DELIVERED)

        for order in self.open_orders:
            order.refresh_from_db()
            self.assertEqual(order.status, Order.STATUS_SHIPPED)
            self.assertEqual(result.view[str(order.id)], Order.STATUS_SHIPPED)

    def test_unknown_ids_are_failures(self):
        result = set_order_status_bulk(
            order_ids=[self.open_orders[0].id, uuid.uuid4(), "not-a-uuid"],
            status=Order.STATUS_CONFIRMED,
        )
        self.assertEqual(result.success_count, 1)
        self.assertEqual(len(result.failures), 2)

    def test_caller_view_is_updated_in_place(self):
        view = {str(o.id): Order.STATUS_ORDERED for o in self.open_orders}
        set_order_status_bulk(
            order_ids=[o.id for o in self.open_orders],
            status=Order.STATUS_PROCESSING,
            view=view,
        )
        self.assertEqual(set(view.values()), {Order.STATUS_PROCESSING})

    def test_management_command_reports_counts(self):
        out, err = StringIO(), StringIO()
        call_command(
            "set_order_status",
            "SHIPPED",
            *[str(i) for i in self.all_ids],
            "--sequential",
            stdout=out,
            stderr=err,
        )
        self.assertIn("3 of 5 updated", out.getvalue())
        self.assertEqual(err.getvalue().count("\n"), 2)


class ThreadedBulkStatusTests(TransactionTestCase):
    """
    Worker threads use their own DB connections, so rows must be committed
    before the fan-out sees them.
    """

    def setUp(self):
        customer = make_customer()
        product = make_product("SKU-1")

        self.open_orders = [make_order(customer, lines=[(product, 1, 100)]) for _ in range(2)]
        self.delivered = make_order(customer, status=Order.STATUS_DELIVERED, lines=[(product, 1, 100)])

    def test_threaded_bulk_update(self):
        # One worker thread: SQLite serializes writers.
        result = set_order_status_bulk(
            order_ids=[o.id for o in self.open_orders] + [self.delivered.id],
            status=Order.STATUS_SHIPPED,
            parallel=True,
            max_workers=1,
        )

        self.assertEqual(result.summary, "2 of 3 updated")
        self.assertEqual([f.order_id for f in result.failures], [str(self.delivered.id)])

        for order in self.open_orders:
            order.refresh_from_db()
            self.assertEqual(order.status, Order.STATUS_SHIPPED)

        self.delivered.refresh_from_db()
        self.assertEqual(self.delivered.status, Order.STATUS_DELIVERED)
