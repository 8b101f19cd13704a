"""
PATH: orders/urls.py

ORDER URLS

- customer: checkout (gateway / COD), own orders, cancel
- payments: gateway webhook, own history, status poll
  (references are gateway order codes (digits) or COD-<hex>)
- admin: order list / detail / status / delete
"""

from django.urls import path, re_path

from orders.views.admin import AdminOrderDetailView, AdminOrderListView
from orders.views.checkout import CODCheckoutView, GatewayCheckoutView
from orders.views.customer import (
    CustomerOrderCancelView,
    CustomerOrderDetailView,
    CustomerOrderListView,
)
from orders.views.payments import (
    PaymentHistoryView,
    PaymentStatusView,
    PaymentWebhookView,
)

app_name = "orders"

urlpatterns = [
    path("checkout/gateway/", GatewayCheckoutView.as_view(), name="checkout-gateway"),
    path("checkout/cod/", CODCheckoutView.as_view(), name="checkout-cod"),

    path("", CustomerOrderListView.as_view(), name="order-list"),
    path("<uuid:order_id>/", CustomerOrderDetailView.as_view(), name="order-detail"),
    path("<uuid:order_id>/cancel/", CustomerOrderCancelView.as_view(), name="order-cancel"),
]

payment_urlpatterns = (
    [
        path("", PaymentHistoryView.as_view(), name="payment-list"),
        path("webhook/", PaymentWebhookView.as_view(), name="webhook"),
        re_path(
            r"^(?P<reference>\d+|COD-[0-9A-Fa-f]+)/$",
            PaymentStatusView.as_view(),
            name="payment-status",
        ),
    ],
    "payments",
)

admin_urlpatterns = (
    [
        path("", AdminOrderListView.as_view(), name="admin-order-list"),
        path("<uuid:order_id>/", AdminOrderDetailView.as_view(), name="admin-order-detail"),
    ],
    "admin-orders",
)
