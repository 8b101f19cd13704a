# orders/models/order.py

import uuid

from django.conf import settings
from django.db import models
from django.utils import timezone


class Order(models.Model):
    """
    Customer order.

    Key rules:
    - total_amount is the sum of item extended prices at creation; never
      recomputed.
    - shipping_address is a snapshot copied at creation, never re-derived
      from the customer's profile.
    - status changes only through orders.services.status_updates.
    - payment is the owning side of the Order -> Payment link (PROTECT:
      deleting an order never touches its payment).
    """

    STATUS_ORDERED = "ORDERED"
    STATUS_CONFIRMED = "CONFIRMED"
    STATUS_PROCESSING = "PROCESSING"
    STATUS_SHIPPED = "SHIPPED"
    STATUS_DELIVERED = "DELIVERED"
    STATUS_CANCELLED = "CANCELLED"

    STATUS_CHOICES = [
        (STATUS_ORDERED, "Ordered"),
        (STATUS_CONFIRMED, "Confirmed"),
        (STATUS_PROCESSING, "Processing"),
        (STATUS_SHIPPED, "Shipped"),
        (STATUS_DELIVERED, "Delivered"),
        (STATUS_CANCELLED, "Cancelled"),
    ]

    SHIPPING_STANDARD = "standard"
    SHIPPING_EXPRESS = "express"
    SHIPPING_PREORDER = "preorder"

    SHIPPING_METHOD_CHOICES = [
        (SHIPPING_STANDARD, "Standard"),
        (SHIPPING_EXPRESS, "Express"),
        (SHIPPING_PREORDER, "Pre-order"),
    ]

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    order_number = models.CharField(
        max_length=64,
        unique=True,
        blank=True,
        help_text="System-generated human-facing order number",
    )

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="orders",
    )

    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_ORDERED)

    total_amount = models.PositiveBigIntegerField(default=0)

    tracking_number = models.CharField(max_length=128, blank=True, default="")
    estimated_delivery = models.DateField(null=True, blank=True)

    shipping_address = models.JSONField(default=dict, blank=True)
    shipping_method = models.CharField(
        max_length=16,
        choices=SHIPPING_METHOD_CHOICES,
        blank=True,
        default="",
    )

    payment = models.ForeignKey(
        "orders.Payment",
        on_delete=models.PROTECT,
        related_name="orders",
    )

    created_at = models.DateTimeField(auto_now_add=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["created_at"], name="order_created_idx"),
            models.Index(fields=["status"], name="order_status_idx"),
            models.Index(fields=["status", "created_at"], name="order_status_created_idx"),
            models.Index(fields=["customer", "created_at"], name="order_customer_created_idx"),
        ]

    def save(self, *args, **kwargs):
        if not self.order_number:
            prefix = timezone.now().strftime("ORD%Y%m%d")
            self.order_number = f"{prefix}-{uuid.uuid4().hex[:8].upper()}"

        super().save(*args, **kwargs)

    @property
    def is_terminal(self) -> bool:
        return self.status in {self.STATUS_DELIVERED, self.STATUS_CANCELLED}

    def __str__(self):
        return f"{self.order_number} | {self.total_amount} | {self.status}"
