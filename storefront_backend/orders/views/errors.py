# orders/views/errors.py

"""
API ERROR NORMALIZATION

Domain exceptions -> {"error": {"code", "message", ...}} responses.
"""

from __future__ import annotations

from rest_framework import status
from rest_framework.response import Response

from orders.services.checkout import (
    CheckoutError,
    EmptyCheckoutError,
    GatewayUnavailableError,
    InvalidCheckoutLineError,
    PaymentNotFoundError,
    ShippingAddressError,
    UnknownShippingMethodError,
)
from orders.services.order_lifecycle import (
    InvalidOrderTransitionError,
    OrderLifecycleError,
    OrderNotCancellableError,
    UnknownOrderStatusError,
)
from orders.services.status_updates import OrderNotDeletableError, OrderNotFoundError
from products.services.inventory import (
    InsufficientStockError,
    InventoryError,
    ProductUnavailableError,
)


def error_response(*, code: str, message: str, http_status: int, **extra):
    """
    Canonical API error response.
    """
    return Response(
        {"error": {"code": code, "message": message, **extra}},
        status=http_status,
    )


_CHECKOUT_ERRORS = [
    (ShippingAddressError, "INVALID_SHIPPING_ADDRESS", status.HTTP_400_BAD_REQUEST),
    (EmptyCheckoutError, "EMPTY_CART", status.HTTP_400_BAD_REQUEST),
    (InvalidCheckoutLineError, "INVALID_LINE", status.HTTP_400_BAD_REQUEST),
    (UnknownShippingMethodError, "UNKNOWN_SHIPPING_METHOD", status.HTTP_400_BAD_REQUEST),
    (GatewayUnavailableError, "GATEWAY_UNAVAILABLE", status.HTTP_502_BAD_GATEWAY),
    (PaymentNotFoundError, "PAYMENT_NOT_FOUND", status.HTTP_404_NOT_FOUND),
    (InsufficientStockError, "INSUFFICIENT_STOCK", status.HTTP_409_CONFLICT),
    (ProductUnavailableError, "PRODUCT_UNAVAILABLE", status.HTTP_409_CONFLICT),
    (InventoryError, "INVALID_LINE", status.HTTP_400_BAD_REQUEST),
    (CheckoutError, "CHECKOUT_FAILED", status.HTTP_400_BAD_REQUEST),
]

_ORDER_ERRORS = [
    (OrderNotFoundError, "ORDER_NOT_FOUND", status.HTTP_404_NOT_FOUND),
    (UnknownOrderStatusError, "UNKNOWN_STATUS", status.HTTP_400_BAD_REQUEST),
    (InvalidOrderTransitionError, "INVALID_TRANSITION", status.HTTP_409_CONFLICT),
    (OrderNotCancellableError, "NOT_CANCELLABLE", status.HTTP_409_CONFLICT),
    (OrderNotDeletableError, "NOT_DELETABLE", status.HTTP_409_CONFLICT),
    (OrderLifecycleError, "ORDER_UPDATE_FAILED", status.HTTP_400_BAD_REQUEST),
]


def checkout_error_response(exc: Exception):
    extra = {}
    if isinstance(exc, ShippingAddressError):
        extra["missing"] = exc.missing
    if isinstance(exc, GatewayUnavailableError):
        extra["retriable"] = True

    for exc_cls, code, http_status in _CHECKOUT_ERRORS:
        if isinstance(exc, exc_cls):
            return error_response(code=code, message=str(exc), http_status=http_status, **extra)
    raise exc


def order_error_response(exc: OrderLifecycleError):
    for exc_cls, code, http_status in _ORDER_ERRORS:
        if isinstance(exc, exc_cls):
            return error_response(code=code, message=str(exc), http_status=http_status)
    raise exc
