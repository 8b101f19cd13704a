# orders/models/order_item.py

import uuid

from django.core.exceptions import ValidationError
from django.db import models

from products.models import Product


class OrderItem(models.Model):
    """
    Order line with a frozen unit price.

    price_at_time is copied from Product.effective_price when the order is
    created and is never recomputed from the catalog afterwards.
    """

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order = models.ForeignKey(
        "orders.Order",
        on_delete=models.CASCADE,
        related_name="items",
    )

    product = models.ForeignKey(
        Product,
        on_delete=models.PROTECT,
        related_name="order_items",
    )

    quantity = models.PositiveIntegerField()
    size = models.CharField(max_length=32, blank=True, default="")

    price_at_time = models.PositiveBigIntegerField()

    class Meta:
        ordering = ["id"]

    def clean(self):
        if self.quantity is None or int(self.quantity) <= 0:
            raise ValidationError({"quantity": "Quantity must be greater than zero"})

    def save(self, *args, **kwargs):
        self.full_clean()
        return super().save(*args, **kwargs)

    @property
    def line_total(self) -> int:
        return int(self.price_at_time or 0) * int(self.quantity or 0)

    def __str__(self):
        return f"{self.product} x {self.quantity} @ {self.price_at_time}"
