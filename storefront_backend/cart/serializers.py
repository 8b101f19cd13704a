"""
PATH: cart/serializers.py

CART SERIALIZERS

Purpose:
- Read shape for cart lines (priced live from Product.effective_price).
- Input shapes for add / set-quantity / merge.
"""

from rest_framework import serializers

from cart.models import CartItem


class CartItemSerializer(serializers.ModelSerializer):
    product_id = serializers.UUIDField(source="product.id", read_only=True)
    product_name = serializers.CharField(source="product.name", read_only=True)

    unit_price = serializers.IntegerField(read_only=True)
    line_total = serializers.IntegerField(read_only=True)

    class Meta:
        model = CartItem
        fields = [
            "id",
            "product_id",
            "product_name",
            "size",
            "quantity",
            "unit_price",
            "line_total",
            "updated_at",
        ]
        read_only_fields = fields


class CartSerializer(serializers.Serializer):
    items = CartItemSerializer(many=True, read_only=True)
    item_count = serializers.IntegerField(read_only=True)
    subtotal_amount = serializers.IntegerField(read_only=True)


class AddCartItemInputSerializer(serializers.Serializer):
    product_id = serializers.UUIDField()
    quantity = serializers.IntegerField(min_value=1, default=1)
    size = serializers.CharField(required=False, allow_blank=True, default="", max_length=32)


class UpdateCartItemInputSerializer(serializers.Serializer):
    quantity = serializers.IntegerField(min_value=1)


class GuestCartItemInputSerializer(serializers.Serializer):
    """
    Lenient on purpose: bad items are reported by the merge, not rejected here.
    """
    product_id = serializers.CharField(required=False, allow_blank=True, default="")
    quantity = serializers.IntegerField(required=False, default=0)
    size = serializers.CharField(required=False, allow_blank=True, allow_null=True, default="")


class GuestCartSnapshotInputSerializer(serializers.Serializer):
    items = GuestCartItemInputSerializer(many=True, required=False, default=list)
    merged_once = serializers.BooleanField(required=False, default=False)
    last_updated = serializers.DateTimeField(required=False, allow_null=True, default=None)
