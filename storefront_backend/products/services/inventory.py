# products/services/inventory.py

"""
======================================================
PATH: products/services/inventory.py
======================================================
STOCK SERVICES

Purpose:
- Validate requested quantities against Product.stock before checkout
  creates any state.
- Deduct stock when an Order materializes (COD placement, gateway PAID).
- Restore stock when an Order is cancelled.

Rules:
- Quantities are integer units.
- Requests for the same product are summed before validation
  (two sizes of one product draw from one counter).
- Deduct/restore lock product rows (select_for_update) and must be called
  inside the caller's transaction.
"""

from __future__ import annotations

import logging
from collections import OrderedDict
from typing import Iterable

from django.db import transaction
from django.db.models import F

from products.models import Product

logger = logging.getLogger(__name__)


class InventoryError(Exception):
    pass


class ProductUnavailableError(InventoryError):
    pass


class InsufficientStockError(InventoryError):
    pass


def _to_int_qty(value) -> int:
    if isinstance(value, bool):
        raise InventoryError("quantity must be a whole integer unit")
    try:
        qty = int(value)
    except (TypeError, ValueError) as exc:
        raise InventoryError("quantity must be a whole integer unit") from exc
    if qty <= 0:
        raise InventoryError("quantity must be at least 1")
    return qty


def _totals_by_product(lines: Iterable[tuple]) -> "OrderedDict[str, int]":
    totals: OrderedDict[str, int] = OrderedDict()
    for product_id, quantity in lines:
        key = str(product_id)
        totals[key] = totals.get(key, 0) + _to_int_qty(quantity)
    return totals


def validate_stock(lines: Iterable[tuple]) -> dict[str, Product]:
    """
    lines: iterable of (product_id, quantity).
    Returns {product_id: Product} for the caller to price from.
    """
    totals = _totals_by_product(lines)
    products = {
        str(p.id): p for p in Product.objects.filter(id__in=list(totals.keys()))
    }

    for product_id, requested in totals.items():
        product = products.get(product_id)
        if product is None or not product.is_active:
            raise ProductUnavailableError(f"Product {product_id} is not available")

        available = int(product.stock or 0)
        if available < requested:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}. "
                f"Requested: {requested}, Available: {available}"
            )

    return products


@transaction.atomic
def deduct_stock(lines: Iterable[tuple]) -> None:
    totals = _totals_by_product(lines)
    locked = {
        str(p.id): p
        for p in Product.objects.select_for_update().filter(id__in=list(totals.keys()))
    }

    for product_id, quantity in totals.items():
        product = locked.get(product_id)
        if product is None:
            raise ProductUnavailableError(f"Product {product_id} is not available")
        if int(product.stock or 0) < quantity:
            raise InsufficientStockError(
                f"Insufficient stock for {product.name}. "
                f"Requested: {quantity}, Available: {product.stock}"
            )
        Product.objects.filter(id=product.id).update(stock=F("stock") - quantity)

    logger.info("Stock deducted", extra={"products": list(totals.keys())})


@transaction.atomic
def restore_stock(lines: Iterable[tuple]) -> None:
    totals = _totals_by_product(lines)
    for product_id, quantity in totals.items():
        Product.objects.filter(id=product_id).update(stock=F("stock") + quantity)

    logger.info("Stock restored", extra={"products": list(totals.keys())})
