# orders/apps.py

"""
ORDERS APP CONFIG

Checkout (gateway + COD), payments, order fulfillment state machine.
"""

from django.apps import AppConfig


class OrdersConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "orders"
    verbose_name = "Orders & Payments"
