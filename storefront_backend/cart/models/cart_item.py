# cart/models/cart_item.py

"""
CART ITEM MODEL

Purpose:
- One row per (owner_key, product, size) holding a quantity.
- owner_key is either an anonymous session id or str(customer.id).

Rules:
- Re-adding the same (owner_key, product, size) increments quantity
  (services, backed by a unique constraint).
- Quantity must be > 0.
- No price is stored: lines are priced live from Product.effective_price
  until checkout freezes them on OrderItem.
"""

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from products.models import Product


class CartItem(models.Model):
    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    owner_key = models.CharField(max_length=64, db_index=True)

    product = models.ForeignKey(
        Product,
        on_delete=models.CASCADE,
        related_name="cart_items",
    )

    # Blank means "no size"; keeps the unique constraint NULL-free.
    size = models.CharField(max_length=32, blank=True, default="")

    quantity = models.PositiveIntegerField(help_text="Must be greater than zero")

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["created_at"]
        constraints = [
            models.UniqueConstraint(
                fields=["owner_key", "product", "size"],
                name="unique_cart_line_per_owner",
            )
        ]

    def clean(self):
        if not (self.owner_key or "").strip():
            raise ValidationError({"owner_key": "owner_key is required"})

        if self.quantity is None or int(self.quantity) <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than zero"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def unit_price(self) -> int:
        return self.product.effective_price

    @property
    def line_total(self) -> int:
        return self.unit_price * int(self.quantity or 0)

    def __str__(self):
        size = f" [{self.size}]" if self.size else ""
        return f"{getattr(self.product, 'name', 'Product')}{size} x {self.quantity}"
