# orders/models/payment.py

import uuid

from django.conf import settings
from django.db import models


class Payment(models.Model):
    """
    One checkout attempt.

    Rules:
    - external_reference is unique (gateway order code or COD-... reference);
      confirmation handling is idempotent on it.
    - PENDING -> PAID | FAILED, both terminal. A retry is a new Payment.
    - Many orders may point at one Payment (Order.payment). No reverse
      collection is stored; use payment.orders / orders_for_payment().
    - amount is the amount charged (items + shipping) and may differ from
      any linked Order.total_amount. Never reconciled automatically.
    """

    METHOD_GATEWAY = "GATEWAY"
    METHOD_COD = "COD"

    METHOD_CHOICES = [
        (METHOD_GATEWAY, "Payment gateway"),
        (METHOD_COD, "Cash on delivery"),
    ]

    STATUS_PENDING = "PENDING"
    STATUS_PAID = "PAID"
    STATUS_FAILED = "FAILED"

    STATUS_CHOICES = [
        (STATUS_PENDING, "Pending"),
        (STATUS_PAID, "Paid"),
        (STATUS_FAILED, "Failed"),
    ]

    TERMINAL_STATUSES = {STATUS_PAID, STATUS_FAILED}

    id = models.UUIDField(primary_key=True, default=uuid.uuid4, editable=False)

    external_reference = models.CharField(
        max_length=64,
        unique=True,
        help_text="Gateway order code or locally generated COD reference",
    )

    method = models.CharField(max_length=16, choices=METHOD_CHOICES)
    amount = models.PositiveBigIntegerField(default=0)
    status = models.CharField(max_length=16, choices=STATUS_CHOICES, default=STATUS_PENDING)

    customer = models.ForeignKey(
        settings.AUTH_USER_MODEL,
        on_delete=models.PROTECT,
        related_name="payments",
    )

    checkout_url = models.URLField(max_length=500, blank=True, default="")

    # Frozen lines + shipping data for deferred order creation (gateway path).
    order_draft = models.JSONField(default=dict, blank=True)

    provider_payload = models.JSONField(default=dict, blank=True)

    completed_at = models.DateTimeField(null=True, blank=True)
    created_at = models.DateTimeField(auto_now_add=True, db_index=True)
    updated_at = models.DateTimeField(auto_now=True)

    class Meta:
        ordering = ["-created_at"]
        indexes = [
            models.Index(fields=["status"], name="payment_status_idx"),
            models.Index(fields=["method", "status"], name="payment_method_status_idx"),
        ]

    @property
    def is_terminal(self) -> bool:
        return self.status in self.TERMINAL_STATUSES

    def __str__(self):
        return f"{self.method}:{self.external_reference} | {self.amount} | {self.status}"
