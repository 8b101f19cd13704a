# products/models/product.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models


class Product(models.Model):
    """
    Read-only product snapshot consumed by cart, checkout and analytics.

    PRICE MODEL (IMPORTANT):
    - unit_price may be NULL (promotional / contact-for-price state)
    - reference_price is the optional "was" price
    - effective price = unit_price, else reference_price, else 0
    - Orders never re-read this price after creation (OrderItem.price_at_time)

    STOCK MODEL:
    - stock is a plain on-hand counter
    - checkout validates against it, order creation deducts it,
      cancellation restores it (products.services.inventory)
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    sku = models.CharField(max_length=128, unique=True, db_index=True)
    name = models.CharField(max_length=255, db_index=True)

    # Whole currency units, no fractional part.
    unit_price = models.PositiveBigIntegerField(null=True, blank=True)
    reference_price = models.PositiveBigIntegerField(null=True, blank=True)

    stock = models.PositiveIntegerField(default=0)

    is_active = models.BooleanField(default=True)

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["is_active"], name="product_active_idx"),
        ]

    def __str__(self):
        return f"{self.name} ({self.sku})"

    def clean(self):
        if not (self.name or "").strip():
            raise ValidationError({"name": "name is required"})
        if not (self.sku or "").strip():
            raise ValidationError({"sku": "sku is required"})

    @property
    def effective_price(self) -> int:
        from products.services.pricing import effective_price

        return effective_price(self)

    @property
    def is_in_stock(self) -> bool:
        return int(self.stock or 0) > 0
