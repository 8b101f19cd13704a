# products/services/pricing.py

"""
PRICE RULES (single source of truth)

effective_price = unit_price ?? reference_price ?? 0

Used everywhere a price is displayed or billed:
- cart line pricing
- checkout amount
- OrderItem.price_at_time snapshot
"""

from __future__ import annotations


def effective_price(product) -> int:
    unit_price = getattr(product, "unit_price", None)
    if unit_price is not None:
        return int(unit_price)

    reference_price = getattr(product, "reference_price", None)
    if reference_price is not None:
        return int(reference_price)

    return 0


def line_total(product, quantity: int) -> int:
    return effective_price(product) * int(quantity)
