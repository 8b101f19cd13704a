# cart/apps.py

"""
CART APP CONFIG

Server-side customer carts + anonymous snapshot reconciliation.
"""

from django.apps import AppConfig


class CartConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "cart"
    verbose_name = "Customer Carts"
