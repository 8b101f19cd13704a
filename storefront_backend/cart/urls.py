"""
PATH: cart/urls.py

CART URLS

- Cart read / clear
- Line add, set quantity, remove
- Anonymous snapshot merge
"""

from django.urls import path

from cart.views.api import (
    CartItemDetailView,
    CartItemsView,
    CartMergeView,
    CartView,
)

app_name = "cart"

urlpatterns = [
    path("", CartView.as_view(), name="cart"),
    path("items/", CartItemsView.as_view(), name="cart-items"),
    path("items/<uuid:item_id>/", CartItemDetailView.as_view(), name="cart-item-detail"),
    path("merge/", CartMergeView.as_view(), name="merge"),
]
