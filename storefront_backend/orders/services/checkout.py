# orders/services/checkout.py

"""
======================================================
PATH: orders/services/checkout.py
======================================================
CHECKOUT INITIATOR

Two paths, one pricing rule:

    amount = sum(effective_price x quantity) + shipping_cost(method)

Gateway path:
- initiate_gateway_checkout(): Payment{GATEWAY, PENDING} + frozen order
  draft, then the external gateway call. NO Order yet.
- confirm_gateway_payment(): PAID materializes the Order from the draft,
  FAILED only closes the payment. Replays are no-ops.

COD path:
- place_cod_order(): Payment{COD, PENDING} + Order{ORDERED} + items in one
  transaction. Both exist or neither does.

Rules:
- Validation (address, quantities, stock) happens before any state exists.
- OrderItem.price_at_time is frozen at creation and never recomputed.
- Order.total_amount = items only; Payment.amount = items + shipping.
"""

from __future__ import annotations

import logging
import secrets
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Mapping

from django.conf import settings
from django.db import transaction
from django.utils import timezone

from cart.services.cart_service import owner_key_for, remove_ordered_lines
from orders.models import Order, OrderItem, Payment
from orders.services.gateway import (
    OUTCOME_FAILED,
    OUTCOME_PAID,
    MAX_DESCRIPTION_LENGTH,
    GatewayCheckoutRequest,
    GatewayError,
    get_gateway,
)
from orders.services.order_lifecycle import validate_payment_transition
from orders.services.status_updates import orders_for_payment
from products.services.inventory import InventoryError, deduct_stock, validate_stock
from products.services.pricing import effective_price

logger = logging.getLogger(__name__)


# ============================================================
# DOMAIN ERRORS
# ============================================================


class CheckoutError(Exception):
    pass


class EmptyCheckoutError(CheckoutError):
    pass


class InvalidCheckoutLineError(CheckoutError):
    pass


class UnknownShippingMethodError(CheckoutError):
    pass


class ShippingAddressError(CheckoutError):
    def __init__(self, message: str, *, missing: list[str] | None = None):
        super().__init__(message)
        self.missing = missing or []


class GatewayUnavailableError(CheckoutError):
    """
    Gateway unreachable or rejected the request. Retriable: a new checkout
    creates a new Payment; the PENDING one is abandoned.
    """

    retriable = True

    def __init__(self, message: str, *, payment: Payment | None = None):
        super().__init__(message)
        self.payment = payment


class PaymentNotFoundError(CheckoutError):
    pass


class InvalidConfirmationError(CheckoutError):
    pass


# ============================================================
# DTOs
# ============================================================


@dataclass(frozen=True)
class CheckoutLine:
    product_id: Any
    quantity: int
    size: str = ""


@dataclass(frozen=True)
class PricedLine:
    product_id: str
    quantity: int
    size: str
    price_at_time: int

    @property
    def line_total(self) -> int:
        return self.price_at_time * self.quantity

    def to_draft(self) -> dict:
        return {
            "product_id": self.product_id,
            "quantity": self.quantity,
            "size": self.size,
            "price_at_time": self.price_at_time,
        }


@dataclass
class GatewayCheckoutResult:
    payment: Payment
    checkout_url: str
    external_reference: str


@dataclass
class ConfirmationResult:
    payment: Payment
    changed: bool
    orders: list[Order] = field(default_factory=list)
    detail: str = ""


# ============================================================
# HELPERS
# ============================================================

REQUIRED_ADDRESS_FIELDS = ("first_name", "last_name", "street")
OPTIONAL_ADDRESS_FIELDS = ("city", "postal_code", "phone")

_ADDRESS_ALIASES = {
    "firstName": "first_name",
    "lastName": "last_name",
    "postalCode": "postal_code",
}


def shipping_cost(shipping_method: str | None) -> int:
    """
    No method means no shipping charge. Unknown methods are rejected.
    """
    method = str(shipping_method or "").strip().lower()
    if not method:
        return 0

    costs = getattr(settings, "SHIPPING_COSTS", {}) or {}
    if method not in costs:
        raise UnknownShippingMethodError(f"Unknown shipping method '{shipping_method}'")
    return int(costs[method])


def normalize_shipping_address(address: Mapping[str, Any] | None, *, required: bool = True) -> dict:
    data: dict[str, str] = {}
    for key, value in dict(address or {}).items():
        key = _ADDRESS_ALIASES.get(key, key)
        if key in REQUIRED_ADDRESS_FIELDS or key in OPTIONAL_ADDRESS_FIELDS:
            data[key] = str(value or "").strip()

    if required:
        missing = [f for f in REQUIRED_ADDRESS_FIELDS if not data.get(f)]
        if missing:
            raise ShippingAddressError(
                f"Shipping address is incomplete: {', '.join(missing)} required",
                missing=missing,
            )

    return data


def _coerce_lines(lines: Iterable[Any]) -> list[CheckoutLine]:
    out: list[CheckoutLine] = []
    for raw in lines or []:
        if isinstance(raw, CheckoutLine):
            line = raw
        elif isinstance(raw, Mapping):
            line = CheckoutLine(
                product_id=raw.get("product_id"),
                quantity=raw.get("quantity"),
                size=str(raw.get("size") or "").strip(),
            )
        else:
            raise InvalidCheckoutLineError("Each checkout line must be an object")

        if not line.product_id:
            raise InvalidCheckoutLineError("product_id is required on every line")
        if isinstance(line.quantity, bool) or not isinstance(line.quantity, int) or line.quantity <= 0:
            raise InvalidCheckoutLineError("quantity must be a positive whole number")
        out.append(line)

    if not out:
        raise EmptyCheckoutError("Cart is empty")
    return out


def price_lines(lines: Iterable[Any]) -> list[PricedLine]:
    """
    Validate lines against stock and freeze the current effective price.
    """
    checkout_lines = _coerce_lines(lines)
    products = validate_stock((line.product_id, line.quantity) for line in checkout_lines)

    return [
        PricedLine(
            product_id=str(line.product_id),
            quantity=int(line.quantity),
            size=line.size,
            price_at_time=effective_price(products[str(line.product_id)]),
        )
        for line in checkout_lines
    ]


def compute_checkout_amount(lines: Iterable[Any], shipping_method: str | None = None) -> int:
    lines = list(lines)
    if lines and all(isinstance(p, PricedLine) for p in lines):
        priced = lines
    else:
        priced = price_lines(lines)
    return sum(p.line_total for p in priced) + shipping_cost(shipping_method)


def generate_gateway_reference() -> str:
    """
    Millisecond timestamp + 3 random digits; numeric because the gateway
    takes an integer order code.
    """
    return f"{int(time.time() * 1000)}{secrets.randbelow(1000):03d}"


def generate_cod_reference() -> str:
    return f"COD-{uuid.uuid4().hex[:12].upper()}"


def _unique_reference(generator) -> str:
    for _ in range(5):
        reference = generator()
        if not Payment.objects.filter(external_reference=reference).exists():
            return reference
    raise CheckoutError("Could not allocate a unique payment reference")


def _create_order(
    *,
    customer,
    payment: Payment,
    priced: list[PricedLine],
    shipping_address: dict,
    shipping_method: str,
) -> Order:
    order = Order.objects.create(
        customer=customer,
        payment=payment,
        status=Order.STATUS_ORDERED,
        total_amount=sum(p.line_total for p in priced),
        shipping_address=shipping_address,
        shipping_method=shipping_method,
    )

    for p in priced:
        OrderItem.objects.create(
            order=order,
            product_id=p.product_id,
            quantity=p.quantity,
            size=p.size,
            price_at_time=p.price_at_time,
        )

    deduct_stock((p.product_id, p.quantity) for p in priced)

    remove_ordered_lines(
        owner_key=owner_key_for(customer),
        lines=[(p.product_id, p.size) for p in priced],
    )
    return order


def _draft_lines(payment: Payment) -> list[PricedLine]:
    return [
        PricedLine(
            product_id=str(line["product_id"]),
            quantity=int(line["quantity"]),
            size=str(line.get("size") or ""),
            price_at_time=int(line["price_at_time"]),
        )
        for line in (payment.order_draft or {}).get("lines", [])
    ]


# ============================================================
# GATEWAY PATH
# ============================================================


def initiate_gateway_checkout(
    *,
    customer,
    lines: Iterable[Any],
    shipping_address: Mapping[str, Any] | None = None,
    shipping_method: str | None = None,
) -> GatewayCheckoutResult:
    method = str(shipping_method or "").strip().lower()
    address = normalize_shipping_address(shipping_address, required=False)
    priced = price_lines(lines)
    amount = compute_checkout_amount(priced, method)

    # Committed before the gateway call: a gateway failure leaves this
    # PENDING payment behind, abandoned.
    with transaction.atomic():
        reference = _unique_reference(generate_gateway_reference)
        payment = Payment.objects.create(
            external_reference=reference,
            method=Payment.METHOD_GATEWAY,
            status=Payment.STATUS_PENDING,
            amount=amount,
            customer=customer,
            order_draft={
                "lines": [p.to_draft() for p in priced],
                "shipping_address": address,
                "shipping_method": method,
            },
        )

    cfg = settings.PAYMENTS.get("GATEWAY", {})
    request = GatewayCheckoutRequest(
        amount=amount,
        description=f"Order {reference}"[:MAX_DESCRIPTION_LENGTH],
        external_reference=reference,
        return_url=cfg.get("RETURN_URL") or "",
        cancel_url=cfg.get("CANCEL_URL") or "",
    )

    try:
        response = get_gateway().create_checkout(request)
    except GatewayError as exc:
        logger.warning(
            "Gateway checkout failed; payment abandoned",
            extra={"external_reference": reference, "error": str(exc)},
        )
        raise GatewayUnavailableError(
            "Payment gateway is unavailable, please try again",
            payment=payment,
        ) from exc

    payment.checkout_url = response.checkout_url
    payment.save(update_fields=["checkout_url", "updated_at"])

    logger.info(
        "Gateway checkout initiated",
        extra={"external_reference": reference, "amount": amount, "customer_id": str(customer.id)},
    )

    return GatewayCheckoutResult(
        payment=payment,
        checkout_url=response.checkout_url,
        external_reference=reference,
    )


@transaction.atomic
def confirm_gateway_payment(
    *,
    external_reference: str,
    outcome: str,
    payload: dict | None = None,
) -> ConfirmationResult:
    outcome = str(outcome or "").strip().upper()
    if outcome not in {OUTCOME_PAID, OUTCOME_FAILED}:
        raise InvalidConfirmationError(f"Unknown payment outcome '{outcome}'")

    payment = (
        Payment.objects.select_for_update()
        .filter(external_reference=str(external_reference).strip())
        .first()
    )
    if payment is None:
        raise PaymentNotFoundError(f"Unknown payment reference '{external_reference}'")

    if payment.method != Payment.METHOD_GATEWAY:
        raise InvalidConfirmationError("Only gateway payments accept confirmations")

    if payment.status == outcome:
        logger.info("Duplicate confirmation ignored", extra={"external_reference": payment.external_reference})
        return ConfirmationResult(
            payment=payment,
            changed=False,
            orders=list(orders_for_payment(payment)),
            detail="Already processed",
        )

    if payment.is_terminal:
        logger.warning(
            "Conflicting confirmation for terminal payment ignored",
            extra={
                "external_reference": payment.external_reference,
                "status": payment.status,
                "outcome": outcome,
            },
        )
        return ConfirmationResult(
            payment=payment,
            changed=False,
            orders=list(orders_for_payment(payment)),
            detail="Payment already terminal",
        )

    validate_payment_transition(payment=payment, target_status=outcome)

    payment.status = outcome
    payment.completed_at = timezone.now()
    if payload is not None:
        payment.provider_payload = payload
    payment.save(update_fields=["status", "completed_at", "provider_payload", "updated_at"])

    if outcome == OUTCOME_FAILED:
        logger.info("Gateway payment failed", extra={"external_reference": payment.external_reference})
        return ConfirmationResult(payment=payment, changed=True, detail="Payment failed")

    draft = payment.order_draft or {}
    try:
        with transaction.atomic():
            order = _create_order(
                customer=payment.customer,
                payment=payment,
                priced=_draft_lines(payment),
                shipping_address=draft.get("shipping_address") or {},
                shipping_method=draft.get("shipping_method") or "",
            )
    except InventoryError as exc:
        # Money arrived but stock did not: keep PAID, flag for an operator.
        logger.error(
            "Paid order could not be materialized",
            extra={"external_reference": payment.external_reference, "error": str(exc)},
        )
        payment.order_draft = {**draft, "materialization_error": str(exc)}
        payment.save(update_fields=["order_draft", "updated_at"])
        return ConfirmationResult(payment=payment, changed=True, detail="Paid; order needs review")

    logger.info(
        "Gateway payment confirmed",
        extra={"external_reference": payment.external_reference, "order_id": str(order.id)},
    )
    return ConfirmationResult(payment=payment, changed=True, orders=[order], detail="Processed")


# ============================================================
# COD PATH
# ============================================================


def place_cod_order(
    *,
    customer,
    lines: Iterable[Any],
    shipping_address: Mapping[str, Any] | None,
    shipping_method: str | None = None,
) -> Order:
    address = normalize_shipping_address(shipping_address, required=True)
    method = str(shipping_method or "").strip().lower()
    priced = price_lines(lines)
    amount = compute_checkout_amount(priced, method)

    with transaction.atomic():
        payment = Payment.objects.create(
            external_reference=_unique_reference(generate_cod_reference),
            method=Payment.METHOD_COD,
            status=Payment.STATUS_PENDING,
            amount=amount,
            customer=customer,
        )

        order = _create_order(
            customer=customer,
            payment=payment,
            priced=priced,
            shipping_address=address,
            shipping_method=method,
        )

    logger.info(
        "COD order placed",
        extra={
            "order_id": str(order.id),
            "external_reference": payment.external_reference,
            "amount": amount,
        },
    )
    return order
