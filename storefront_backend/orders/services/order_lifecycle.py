"""
ORDER / PAYMENT LIFECYCLE DOMAIN RULES

This module defines the ONLY allowed status changes for Order and Payment.

DESIGN PRINCIPLES:
- No database writes
- No stock mutation
- No side effects
- Single source of truth

Order:
- ORDERED -> CONFIRMED -> PROCESSING -> SHIPPED -> DELIVERED
- CANCELLED from any non-terminal state
- Administrators may jump between non-terminal states (no skip
  enforcement); DELIVERED and CANCELLED are never left.

Payment:
- PENDING -> PAID | FAILED, both terminal.
"""

from __future__ import annotations

from orders.models import Order, Payment

# ============================================================
# DOMAIN ERRORS
# ============================================================


class OrderLifecycleError(Exception):
    pass


class UnknownOrderStatusError(OrderLifecycleError):
    pass


class InvalidOrderTransitionError(OrderLifecycleError):
    pass


class InvalidPaymentTransitionError(OrderLifecycleError):
    pass


class OrderNotCancellableError(OrderLifecycleError):
    pass


# ============================================================
# STATE DEFINITIONS
# ============================================================

ORDER_FLOW = [
    Order.STATUS_ORDERED,
    Order.STATUS_CONFIRMED,
    Order.STATUS_PROCESSING,
    Order.STATUS_SHIPPED,
    Order.STATUS_DELIVERED,
]

ALL_ORDER_STATUSES = set(ORDER_FLOW) | {Order.STATUS_CANCELLED}

TERMINAL_ORDER_STATES = {
    Order.STATUS_DELIVERED,
    Order.STATUS_CANCELLED,
}

# Fulfillment-based revenue recognition.
REVENUE_STATUSES = {
    Order.STATUS_SHIPPED,
    Order.STATUS_DELIVERED,
}

# Customers may cancel only before the parcel leaves.
CUSTOMER_CANCELLABLE_STATES = {
    Order.STATUS_ORDERED,
    Order.STATUS_CONFIRMED,
    Order.STATUS_PROCESSING,
}

ALLOWED_PAYMENT_TRANSITIONS = {
    Payment.STATUS_PENDING: {
        Payment.STATUS_PAID,
        Payment.STATUS_FAILED,
    },
}

# Shown when the order is still ORDERED but the money already arrived:
# strictly past CONFIRMED, before PROCESSING.
PAID_BUT_ORDERED_INDEX = 1.2


# ============================================================
# ORDER RULES
# ============================================================


def normalize_order_status(value) -> str:
    status = str(value or "").strip().upper()
    if status not in ALL_ORDER_STATUSES:
        raise UnknownOrderStatusError(f"Unknown order status '{value}'")
    return status


def can_set_order_status(*, from_status: str, to_status: str) -> bool:
    if to_status not in ALL_ORDER_STATUSES:
        return False

    if from_status == to_status:
        return True

    return from_status not in TERMINAL_ORDER_STATES


def validate_order_status_change(*, order: Order, target_status: str) -> None:
    if not can_set_order_status(from_status=order.status, to_status=target_status):
        raise InvalidOrderTransitionError(
            f"Order {order.order_number} cannot move from "
            f"'{order.status}' to '{target_status}'"
        )


def validate_customer_cancel(*, order: Order) -> None:
    if order.status not in CUSTOMER_CANCELLABLE_STATES:
        raise OrderNotCancellableError(
            f"Order {order.order_number} cannot be cancelled in status '{order.status}'"
        )


def progress_index(order: Order) -> float:
    """
    Timeline step for customer-facing display.

    ORDERED=0 .. DELIVERED=4, CANCELLED=-1. ORDERED with a PAID payment
    projects to PAID_BUT_ORDERED_INDEX. Read-only: never writes the order.
    """
    if order.status == Order.STATUS_CANCELLED:
        return -1

    index = ORDER_FLOW.index(order.status)

    if order.status == Order.STATUS_ORDERED:
        payment = getattr(order, "payment", None)
        if payment is not None and payment.status == Payment.STATUS_PAID:
            return PAID_BUT_ORDERED_INDEX

    return index


def recognizes_revenue(status: str) -> bool:
    return status in REVENUE_STATUSES


# ============================================================
# PAYMENT RULES
# ============================================================


def can_transition_payment(*, from_status: str, to_status: str) -> bool:
    if from_status in Payment.TERMINAL_STATUSES:
        return False

    return to_status in ALLOWED_PAYMENT_TRANSITIONS.get(from_status, set())


def validate_payment_transition(*, payment: Payment, target_status: str) -> None:
    if not can_transition_payment(from_status=payment.status, to_status=target_status):
        raise InvalidPaymentTransitionError(
            f"Payment {payment.external_reference} cannot transition from "
            f"'{payment.status}' to '{target_status}'"
        )
