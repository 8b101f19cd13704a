# cart/services/guest_snapshot.py

"""
ANONYMOUS CART SNAPSHOT

The guest cart lives on the client (storage key "guest_cart_v1") as:

    {"items": [{"product_id", "quantity", "size"}], "merged_once": bool,
     "last_updated": ISO-8601}

This module is the server-side reading of that payload:
- load_snapshot(): tolerant parse, TTL expiry, optional invalid-item filter
- record_items(): a fresh batch of items re-arms the snapshot (merged_once=False)
- GuestCartSnapshot.cleared(): the post-merge replacement

Invariant: merged_once=True implies items == [].
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta
from datetime import timezone as dt_timezone
from typing import Any

from django.conf import settings
from django.utils import timezone
from django.utils.dateparse import parse_datetime

STORAGE_KEY = "guest_cart_v1"


def _ttl_days() -> int:
    return int(getattr(settings, "GUEST_CART_TTL_DAYS", 30))


@dataclass(frozen=True)
class GuestCartItem:
    product_id: str
    quantity: int
    size: str = ""

    @property
    def is_valid(self) -> bool:
        return bool(self.product_id) and self.quantity > 0

    def to_dict(self) -> dict:
        return {"product_id": self.product_id, "quantity": self.quantity, "size": self.size}


@dataclass(frozen=True)
class GuestCartSnapshot:
    items: list[GuestCartItem] = field(default_factory=list)
    merged_once: bool = False
    last_updated: datetime | None = None

    @classmethod
    def cleared(cls, *, now: datetime | None = None) -> "GuestCartSnapshot":
        return cls(items=[], merged_once=True, last_updated=now or timezone.now())

    def to_dict(self) -> dict:
        return {
            "items": [i.to_dict() for i in self.items],
            "merged_once": self.merged_once,
            "last_updated": self.last_updated.isoformat() if self.last_updated else None,
        }


def _coerce_quantity(value: Any) -> int:
    if isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def _coerce_item(raw: Any) -> GuestCartItem | None:
    if not isinstance(raw, dict):
        return None

    product_id = raw.get("product_id", raw.get("productId"))
    return GuestCartItem(
        product_id=str(product_id or "").strip(),
        quantity=_coerce_quantity(raw.get("quantity")),
        size=str(raw.get("size") or "").strip(),
    )


def _coerce_datetime(value: Any) -> datetime | None:
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str) and value.strip():
        dt = parse_datetime(value.strip())
    else:
        return None

    if dt is not None and timezone.is_naive(dt):
        dt = timezone.make_aware(dt, dt_timezone.utc)
    return dt


def load_snapshot(
    raw: Any,
    *,
    now: datetime | None = None,
    drop_invalid: bool = True,
) -> GuestCartSnapshot:
    """
    Parse a client snapshot.

    - Non-dict payloads or a non-list "items" yield an empty snapshot.
    - A snapshot older than GUEST_CART_TTL_DAYS yields an empty snapshot.
    - merged_once=True always yields an empty item list.
    - drop_invalid=False keeps invalid items so the merge can report them.
    """
    now = now or timezone.now()

    if not isinstance(raw, dict) or not isinstance(raw.get("items", []), list):
        return GuestCartSnapshot(items=[], merged_once=False, last_updated=now)

    merged_once = bool(raw.get("merged_once", raw.get("mergedOnce", False)))
    last_updated = _coerce_datetime(raw.get("last_updated", raw.get("lastUpdated")))

    if last_updated is not None and now - last_updated > timedelta(days=_ttl_days()):
        return GuestCartSnapshot(items=[], merged_once=False, last_updated=now)

    if merged_once:
        return GuestCartSnapshot(items=[], merged_once=True, last_updated=last_updated)

    items = [item for item in (_coerce_item(r) for r in raw.get("items") or []) if item]
    if drop_invalid:
        items = [item for item in items if item.is_valid]

    return GuestCartSnapshot(items=items, merged_once=False, last_updated=last_updated)


def record_items(
    items: list[GuestCartItem],
    *,
    now: datetime | None = None,
) -> GuestCartSnapshot:
    """
    Saving a new batch of guest items re-arms the merge (merged_once=False).
    """
    return GuestCartSnapshot(
        items=[item for item in items if item.is_valid],
        merged_once=False,
        last_updated=now or timezone.now(),
    )
