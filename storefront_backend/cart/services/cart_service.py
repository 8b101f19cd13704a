# cart/services/cart_service.py

"""
CART SERVICE

Purpose:
- Owner-keyed cart lines (customer id or anonymous session id).
- Upsert semantics: (owner_key, product, size) is one line; re-adding
  increments quantity.
- Every mutation emits cart_changed.

Money rule:
- Lines carry no price; they are priced live from Product.effective_price.
"""

from __future__ import annotations

import logging
from typing import Iterable

from django.db import transaction

from cart.models import CartItem
from cart.signals import cart_changed
from products.models import Product
from products.services.inventory import ProductUnavailableError

logger = logging.getLogger(__name__)


class CartError(Exception):
    pass


class CartItemNotFoundError(CartError):
    pass


class InvalidQuantityError(CartError):
    pass


def owner_key_for(user) -> str:
    return str(user.id)


def _normalize_size(size) -> str:
    return str(size or "").strip()


def _require_positive_qty(quantity) -> int:
    if isinstance(quantity, bool):
        raise InvalidQuantityError("quantity must be a whole integer unit")
    try:
        qty = int(quantity)
    except (TypeError, ValueError) as exc:
        raise InvalidQuantityError("quantity must be a whole integer unit") from exc
    if qty <= 0:
        raise InvalidQuantityError("quantity must be at least 1")
    return qty


def _notify(owner_key: str, reason: str) -> None:
    cart_changed.send(sender=CartItem, owner_key=owner_key, reason=reason)


def list_items(*, owner_key: str):
    return CartItem.objects.filter(owner_key=owner_key).select_related("product")


def cart_summary(*, owner_key: str) -> dict:
    items = list(list_items(owner_key=owner_key))
    return {
        "owner_key": owner_key,
        "items": items,
        "item_count": sum(int(i.quantity) for i in items),
        "subtotal_amount": sum(i.line_total for i in items),
    }


@transaction.atomic
def add_item(
    *,
    owner_key: str,
    product_id,
    quantity,
    size: str | None = None,
    notify: bool = True,
) -> CartItem:
    qty = _require_positive_qty(quantity)
    size = _normalize_size(size)

    product = Product.objects.filter(id=product_id, is_active=True).first()
    if product is None:
        raise ProductUnavailableError(f"Product {product_id} is not available")

    item = (
        CartItem.objects.select_for_update()
        .filter(owner_key=owner_key, product=product, size=size)
        .first()
    )

    if item is None:
        item = CartItem.objects.create(
            owner_key=owner_key,
            product=product,
            size=size,
            quantity=qty,
        )
    else:
        item.quantity = int(item.quantity) + qty
        item.save(update_fields=["quantity", "updated_at"])

    if notify:
        _notify(owner_key, "add")
    return item


@transaction.atomic
def set_quantity(*, owner_key: str, item_id, quantity) -> CartItem:
    qty = _require_positive_qty(quantity)

    item = CartItem.objects.select_for_update().filter(id=item_id, owner_key=owner_key).first()
    if item is None:
        raise CartItemNotFoundError("Cart item not found")

    item.quantity = qty
    item.save(update_fields=["quantity", "updated_at"])

    _notify(owner_key, "update")
    return item


def remove_item(*, owner_key: str, item_id) -> None:
    deleted, _ = CartItem.objects.filter(id=item_id, owner_key=owner_key).delete()
    if not deleted:
        raise CartItemNotFoundError("Cart item not found")

    _notify(owner_key, "remove")


def clear_cart(*, owner_key: str) -> int:
    deleted, _ = CartItem.objects.filter(owner_key=owner_key).delete()
    _notify(owner_key, "clear")
    return deleted


def remove_ordered_lines(*, owner_key: str, lines: Iterable[tuple]) -> int:
    """
    Drop the cart lines that just became order lines.

    lines: iterable of (product_id, size).
    """
    removed = 0
    for product_id, size in lines:
        deleted, _ = CartItem.objects.filter(
            owner_key=owner_key,
            product_id=product_id,
            size=_normalize_size(size),
        ).delete()
        removed += deleted

    if removed:
        logger.info(
            "Ordered lines removed from cart",
            extra={"owner_key": owner_key, "removed": removed},
        )
        _notify(owner_key, "ordered")
    return removed
