# orders/filters.py

import django_filters

from orders.models import Order


class AdminOrderFilter(django_filters.FilterSet):
    status = django_filters.MultipleChoiceFilter(choices=Order.STATUS_CHOICES)
    shipping_method = django_filters.ChoiceFilter(choices=Order.SHIPPING_METHOD_CHOICES)
    payment_method = django_filters.CharFilter(field_name="payment__method", lookup_expr="iexact")
    customer_email = django_filters.CharFilter(field_name="customer__email", lookup_expr="icontains")
    created_after = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="gte")
    created_before = django_filters.IsoDateTimeFilter(field_name="created_at", lookup_expr="lt")

    class Meta:
        model = Order
        fields = ["status", "shipping_method"]
