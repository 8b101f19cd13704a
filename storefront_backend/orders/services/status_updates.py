# orders/services/status_updates.py

"""
======================================================
PATH: orders/services/status_updates.py
======================================================
FULFILLMENT WRITES

- set_order_status(): single admin update (one row lock, last write wins)
- set_order_status_bulk(): N independent single updates fanned out
  concurrently, each wrapped in an OptimisticStatusEdit; NOT transactional
- delete_order(): admin hard delete (CANCELLED orders only)
- cancel_order(): customer cancellation before shipment

Rules:
- Status legality lives in orders.services.order_lifecycle.
- Entering CANCELLED restores product stock exactly once.
- The actual column write is isolated in _write_status() so a version
  token can be added without touching callers.
"""

from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass, field
from datetime import date
from functools import partial
from typing import Iterable, MutableMapping

from django.conf import settings
from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction

from backend.concurrency import run_parallel
from orders.models import Order, Payment
from orders.services.order_lifecycle import (
    OrderLifecycleError,
    normalize_order_status,
    validate_customer_cancel,
    validate_order_status_change,
)
from products.services.inventory import restore_stock

logger = logging.getLogger(__name__)


# ============================================================
# DOMAIN ERRORS
# ============================================================


class OrderNotFoundError(OrderLifecycleError):
    pass


class OrderNotDeletableError(OrderLifecycleError):
    pass


class InvalidEditStateError(OrderLifecycleError):
    pass


# ============================================================
# QUERIES
# ============================================================


def orders_for_payment(payment: Payment):
    return Order.objects.filter(payment=payment).order_by("created_at")


def current_status_view(order_ids: Iterable) -> dict[str, str]:
    valid_ids = []
    for order_id in order_ids:
        try:
            valid_ids.append(uuid.UUID(str(order_id)))
        except ValueError:
            continue

    return {
        str(order_id): status
        for order_id, status in Order.objects.filter(id__in=valid_ids).values_list("id", "status")
    }


# ============================================================
# WRITES
# ============================================================


def _restore_order_stock(order: Order) -> None:
    restore_stock((item.product_id, item.quantity) for item in order.items.all())


def _write_status(
    order: Order,
    *,
    status: str,
    tracking_number: str | None = None,
    estimated_delivery: date | None = None,
) -> Order:
    fields = ["status", "updated_at"]
    order.status = status

    if tracking_number is not None:
        order.tracking_number = tracking_number
        fields.append("tracking_number")

    if estimated_delivery is not None:
        order.estimated_delivery = estimated_delivery
        fields.append("estimated_delivery")

    order.save(update_fields=fields)
    return order


def _lock_order(order_id) -> Order:
    order = (
        Order.objects.select_for_update()
        .filter(id=order_id)
        .first()
    )
    if order is None:
        raise OrderNotFoundError(f"Order {order_id} not found")
    return order


@transaction.atomic
def set_order_status(
    *,
    order_id,
    status: str,
    tracking_number: str | None = None,
    estimated_delivery: date | None = None,
) -> Order:
    target = normalize_order_status(status)
    order = _lock_order(order_id)

    validate_order_status_change(order=order, target_status=target)

    if target == order.status and tracking_number is None and estimated_delivery is None:
        return order

    previous = order.status
    if target == Order.STATUS_CANCELLED and previous != Order.STATUS_CANCELLED:
        _restore_order_stock(order)

    _write_status(
        order,
        status=target,
        tracking_number=tracking_number,
        estimated_delivery=estimated_delivery,
    )

    logger.info(
        "Order status updated",
        extra={"order_id": str(order.id), "from": previous, "to": target},
    )
    return order


@transaction.atomic
def cancel_order(*, order_id, customer) -> Order:
    order = _lock_order(order_id)

    # Another customer's order is reported as missing.
    if order.customer_id != customer.id:
        raise OrderNotFoundError(f"Order {order_id} not found")

    validate_customer_cancel(order=order)

    previous = order.status
    _restore_order_stock(order)
    _write_status(order, status=Order.STATUS_CANCELLED)

    logger.info(
        "Order cancelled by customer",
        extra={"order_id": str(order.id), "from": previous},
    )
    return order


@transaction.atomic
def delete_order(*, order_id) -> None:
    """
    Hard delete. The linked Payment is left untouched, even when this was
    the last order pointing at it.
    """
    order = _lock_order(order_id)

    if order.status != Order.STATUS_CANCELLED:
        raise OrderNotDeletableError(
            f"Order {order.order_number} must be CANCELLED before it can be deleted"
        )

    payment_reference = order.payment.external_reference
    order_number = order.order_number
    order.delete()

    logger.info(
        "Order deleted",
        extra={"order_number": order_number, "payment_reference": payment_reference},
    )


# ============================================================
# OPTIMISTIC EDIT (TWO-PHASE, PER ORDER)
# ============================================================


class OptimisticStatusEdit:
    """
    IDLE -> PENDING -> COMMITTED | ROLLED_BACK

    begin() captures the value the view held immediately before the
    tentative write; rollback() restores exactly that value, not whatever
    the view shows by then.
    """

    IDLE = "IDLE"
    PENDING = "PENDING"
    COMMITTED = "COMMITTED"
    ROLLED_BACK = "ROLLED_BACK"

    _MISSING = object()

    def __init__(self, *, order_id, view: MutableMapping[str, str]):
        self.order_id = str(order_id)
        self.view = view
        self.state = self.IDLE
        self.previous = self._MISSING
        self.tentative: str | None = None

    def _require(self, state: str) -> None:
        if self.state != state:
            raise InvalidEditStateError(
                f"Edit for order {self.order_id} is {self.state}, expected {state}"
            )

    def begin(self, status: str) -> None:
        self._require(self.IDLE)
        self.previous = self.view.get(self.order_id, self._MISSING)
        self.tentative = status
        self.view[self.order_id] = status
        self.state = self.PENDING

    def commit(self, server_status: str) -> None:
        self._require(self.PENDING)
        self.view[self.order_id] = server_status
        self.state = self.COMMITTED

    def rollback(self) -> None:
        self._require(self.PENDING)
        if self.previous is self._MISSING:
            self.view.pop(self.order_id, None)
        else:
            self.view[self.order_id] = self.previous
        self.state = self.ROLLED_BACK

    @property
    def previous_status(self) -> str | None:
        return None if self.previous is self._MISSING else self.previous


# ============================================================
# BULK (BEST EFFORT)
# ============================================================


@dataclass(frozen=True)
class BulkFailure:
    order_id: str
    error: str


@dataclass
class BulkStatusResult:
    requested: int
    success_count: int = 0
    failures: list[BulkFailure] = field(default_factory=list)
    view: dict = field(default_factory=dict)

    @property
    def summary(self) -> str:
        return f"{self.success_count} of {self.requested} updated"


def _apply_one(order_id: str, *, status: str, view: MutableMapping[str, str]) -> BulkFailure | None:
    edit = OptimisticStatusEdit(order_id=order_id, view=view)
    edit.begin(status)

    try:
        order = set_order_status(order_id=order_id, status=status)
    except (OrderLifecycleError, ValidationError, DatabaseError) as exc:
        edit.rollback()
        return BulkFailure(order_id=order_id, error=str(exc))

    edit.commit(order.status)
    return None


def set_order_status_bulk(
    *,
    order_ids: Iterable,
    status: str,
    view: MutableMapping[str, str] | None = None,
    parallel: bool | None = None,
    max_workers: int | None = None,
) -> BulkStatusResult:
    """
    No ordering between updates; overlapping bulk runs are last-write-wins
    per order. Callers should re-fetch canonical state afterwards.
    """
    ids = list(dict.fromkeys(str(order_id) for order_id in order_ids))
    target = normalize_order_status(status)

    if view is None:
        view = current_status_view(ids)

    if parallel is None:
        parallel = getattr(settings, "ORDERS_BULK_PARALLEL", True)
    if max_workers is None:
        max_workers = getattr(settings, "ORDERS_BULK_MAX_WORKERS", 8)

    outcomes = run_parallel(
        {order_id: partial(_apply_one, order_id, status=target, view=view) for order_id in ids},
        parallel=parallel,
        max_workers=max_workers,
    )

    failures = [failure for failure in outcomes.values() if failure is not None]
    result = BulkStatusResult(
        requested=len(ids),
        success_count=len(ids) - len(failures),
        failures=failures,
        view=dict(view),
    )

    logger.info(
        "Bulk order status update finished",
        extra={"status": target, "summary": result.summary, "failed": [f.order_id for f in failures]},
    )
    return result
