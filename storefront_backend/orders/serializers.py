"""
PATH: orders/serializers.py

ORDER / PAYMENT SERIALIZERS

Read shapes:
- OrderSerializer: order + frozen items + payment summary
  (payment_amount and amount_discrepancy are shown, never reconciled)
- PaymentSerializer: payment status for polling and payment history,
  with a summary of the linked orders

Input shapes:
- checkout (gateway / COD), admin status update, customer cancel
"""

from django.conf import settings
from rest_framework import serializers

from orders.models import Order, OrderItem, Payment
from orders.services.order_lifecycle import ALL_ORDER_STATUSES, progress_index


class OrderItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(source="product.id", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)
    line_total = serializers.IntegerField(read_only=True)

    class Meta:
        model = OrderItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "quantity",
            "size",
            "price_at_time",
            "line_total",
        ]
        read_only_fields = fields


class OrderSerializer(serializers.ModelSerializer):
    items = OrderItemSerializer(many=True, read_only=True)

    external_reference = serializers.CharField(source="payment.external_reference", read_only=True)
    payment_method = serializers.CharField(source="payment.method", read_only=True)
    payment_status = serializers.CharField(source="payment.status", read_only=True)
    payment_amount = serializers.IntegerField(source="payment.amount", read_only=True)

    amount_discrepancy = serializers.SerializerMethodField()
    progress_index = serializers.SerializerMethodField()

    class Meta:
        model = Order
        fields = [
            "id",
            "order_number",
            "customer",
            "status",
            "progress_index",
            "total_amount",
            "payment_amount",
            "amount_discrepancy",
            "external_reference",
            "payment_method",
            "payment_status",
            "tracking_number",
            "estimated_delivery",
            "shipping_address",
            "shipping_method",
            "items",
            "created_at",
            "updated_at",
        ]
        read_only_fields = fields

    def get_amount_discrepancy(self, obj) -> int:
        return int(obj.payment.amount) - int(obj.total_amount)

    def get_progress_index(self, obj) -> float:
        return progress_index(obj)


class PaymentOrderSummarySerializer(serializers.ModelSerializer):
    class Meta:
        model = Order
        fields = ["id", "order_number", "status", "total_amount", "created_at"]
        read_only_fields = fields


class PaymentSerializer(serializers.ModelSerializer):
    order_ids = serializers.SerializerMethodField()
    orders = PaymentOrderSummarySerializer(many=True, read_only=True)

    class Meta:
        model = Payment
        fields = [
            "id",
            "external_reference",
            "method",
            "status",
            "amount",
            "checkout_url",
            "completed_at",
            "created_at",
            "order_ids",
            "orders",
        ]
        read_only_fields = fields

    def get_order_ids(self, obj) -> list[str]:
        return [str(order.pk) for order in obj.orders.all()]


# =====================================================
# INPUT SERIALIZERS
# =====================================================


class CheckoutLineInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1)
    size = serializers.CharField(required=False, allow_blank=True, default="", max_length=32)


class ShippingAddressInputSerializer(serializers.Serializer):
    first_name = serializers.CharField(required=False, allow_blank=True, default="")
    last_name = serializers.CharField(required=False, allow_blank=True, default="")
    street = serializers.CharField(required=False, allow_blank=True, default="")
    city = serializers.CharField(required=False, allow_blank=True, default="")
    postal_code = serializers.CharField(required=False, allow_blank=True, default="")
    phone = serializers.CharField(required=False, allow_blank=True, default="")

    def to_internal_value(self, data):
        # Accept the camelCase keys browser clients send.
        if isinstance(data, dict):
            data = {
                {"firstName": "first_name", "lastName": "last_name", "postalCode": "postal_code"}.get(k, k): v
                for k, v in data.items()
            }
        return super().to_internal_value(data)


class CheckoutInputSerializer(serializers.Serializer):
    items = CheckoutLineInputSerializer(many=True, allow_empty=False)
    shipping_address = ShippingAddressInputSerializer(required=False, default=dict)
    shipping_method = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")

    def validate_shipping_method(self, value):
        method = str(value or "").strip().lower()
        if method and method not in (getattr(settings, "SHIPPING_COSTS", {}) or {}):
            raise serializers.ValidationError(f"Unknown shipping method '{value}'")
        return method


class AdminOrderUpdateSerializer(serializers.Serializer):
    status = serializers.ChoiceField(choices=sorted(ALL_ORDER_STATUSES), required=False)
    tracking_number = serializers.CharField(required=False, allow_blank=True, max_length=128)
    estimated_delivery = serializers.DateField(required=False, allow_null=True)

    def validate(self, attrs):
        if not attrs:
            raise serializers.ValidationError("Provide status, tracking_number or estimated_delivery")
        return attrs
