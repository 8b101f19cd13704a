# cart/services/merge.py

"""
ANONYMOUS CART MERGE (BEST EFFORT, AT MOST ONCE)

merge_anonymous_cart() folds a guest snapshot into the customer's cart.

Rules:
- Runs only for an authenticated customer with merged_once=False and a
  non-empty item list; anything else is a no-op.
- Items with quantity <= 0 or no product id are skipped.
- Each item runs in its own savepoint; a failing item is recorded and
  dropped, the rest still merge.
- The returned snapshot is always the cleared one (items=[],
  merged_once=True) once a merge ran, even if items failed.

Concurrency:
- Guarded by merged_once only, not a lock. Two requests that both read
  merged_once=False before either writes can double-merge; accepted.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime

from django.core.exceptions import ValidationError
from django.db import DatabaseError, transaction
from django.utils import timezone

from cart.models import CartItem
from cart.services.cart_service import CartError, add_item, owner_key_for
from cart.services.guest_snapshot import GuestCartItem, GuestCartSnapshot
from cart.signals import cart_changed
from products.services.inventory import InventoryError

logger = logging.getLogger(__name__)


class CartMergeError(Exception):
    pass


@dataclass
class MergeResult:
    performed: bool
    snapshot: GuestCartSnapshot
    merged: list[dict] = field(default_factory=list)
    skipped: list[dict] = field(default_factory=list)
    failed: list[dict] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "performed": self.performed,
            "merged": self.merged,
            "skipped": self.skipped,
            "failed": self.failed,
            "snapshot": self.snapshot.to_dict(),
        }


def _merge_one(*, owner_key: str, item: GuestCartItem) -> CartItem:
    with transaction.atomic():
        return add_item(
            owner_key=owner_key,
            product_id=item.product_id,
            quantity=item.quantity,
            size=item.size,
            notify=False,
        )


def merge_anonymous_cart(
    *,
    customer,
    snapshot: GuestCartSnapshot,
    now: datetime | None = None,
) -> MergeResult:
    if customer is None or not getattr(customer, "is_authenticated", False):
        raise CartMergeError("An authenticated customer is required to merge a cart")

    now = now or timezone.now()

    if snapshot.merged_once:
        return MergeResult(performed=False, snapshot=GuestCartSnapshot.cleared(now=now))

    if not snapshot.items:
        return MergeResult(performed=False, snapshot=snapshot)

    owner_key = owner_key_for(customer)
    result = MergeResult(performed=True, snapshot=GuestCartSnapshot.cleared(now=now))

    for item in snapshot.items:
        if not item.is_valid:
            result.skipped.append(item.to_dict())
            continue

        try:
            line = _merge_one(owner_key=owner_key, item=item)
        except (CartError, InventoryError, ValidationError, DatabaseError) as exc:
            logger.warning(
                "Guest cart item failed to merge",
                extra={"owner_key": owner_key, "product_id": item.product_id, "error": str(exc)},
            )
            result.failed.append({**item.to_dict(), "error": str(exc)})
            continue

        result.merged.append({**item.to_dict(), "cart_item_id": str(line.id), "quantity_now": line.quantity})

    logger.info(
        "Guest cart merged",
        extra={
            "owner_key": owner_key,
            "merged": len(result.merged),
            "skipped": len(result.skipped),
            "failed": len(result.failed),
        },
    )

    cart_changed.send(sender=CartItem, owner_key=owner_key, reason="merge")
    return result
