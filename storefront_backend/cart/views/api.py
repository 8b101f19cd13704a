# cart/views/api.py

"""
CART API VIEWS

Purpose:
- Authenticated customer cart: list, add, set quantity, remove, clear
- Anonymous snapshot merge after login (at most once per snapshot)

Hard rules:
- owner_key is always derived from request.user, never from the payload.
- Money is server-owned: lines are priced from Product.effective_price.
"""

from __future__ import annotations

import logging

from django.core.exceptions import ValidationError as DjangoValidationError
from drf_spectacular.utils import OpenApiExample, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from cart.serializers import (
    AddCartItemInputSerializer,
    CartSerializer,
    GuestCartSnapshotInputSerializer,
    UpdateCartItemInputSerializer,
)
from cart.services.cart_service import (
    CartItemNotFoundError,
    InvalidQuantityError,
    add_item,
    cart_summary,
    clear_cart,
    owner_key_for,
    remove_item,
    set_quantity,
)
from cart.services.guest_snapshot import load_snapshot
from cart.services.merge import merge_anonymous_cart
from permissions.roles import CAP_CART_MANAGE, HasCapability
from products.services.inventory import ProductUnavailableError

logger = logging.getLogger(__name__)


# =====================================================
# API ERROR NORMALIZATION
# =====================================================

def error_response(*, code: str, message: str, http_status: int):
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


class CartBaseView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CART_MANAGE

    def owner_key(self) -> str:
        return owner_key_for(self.request.user)

    def cart_response(self, http_status=status.HTTP_200_OK):
        summary = cart_summary(owner_key=self.owner_key())
        return Response(CartSerializer(summary).data, status=http_status)


# =====================================================
# CART VIEWS
# =====================================================

class CartView(CartBaseView):
    @extend_schema(
        tags=["Cart"],
        responses={200: CartSerializer},
        description="Current customer cart priced at effective prices",
    )
    def get(self, request):
        return self.cart_response()

    @extend_schema(
        tags=["Cart"],
        responses={200: CartSerializer},
        description="Remove every line from the customer cart",
    )
    def delete(self, request):
        clear_cart(owner_key=self.owner_key())
        return self.cart_response()


class CartItemsView(CartBaseView):
    @extend_schema(
        tags=["Cart"],
        request=AddCartItemInputSerializer,
        responses={201: CartSerializer},
        description="Add a product line; re-adding the same product and size increments quantity",
    )
    def post(self, request):
        serializer = AddCartItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        try:
            add_item(
                owner_key=self.owner_key(),
                product_id=data["product_id"],
                quantity=data["quantity"],
                size=data.get("size"),
            )
        except ProductUnavailableError as exc:
            return error_response(
                code="PRODUCT_UNAVAILABLE",
                message=str(exc),
                http_status=status.HTTP_404_NOT_FOUND,
            )
        except (InvalidQuantityError, DjangoValidationError) as exc:
            return error_response(
                code="INVALID_CART_LINE",
                message=str(exc),
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        return self.cart_response(http_status=status.HTTP_201_CREATED)


class CartItemDetailView(CartBaseView):
    @extend_schema(
        tags=["Cart"],
        request=UpdateCartItemInputSerializer,
        responses={200: CartSerializer},
        description="Set the quantity of one cart line",
    )
    def patch(self, request, item_id):
        serializer = UpdateCartItemInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)

        try:
            set_quantity(
                owner_key=self.owner_key(),
                item_id=item_id,
                quantity=serializer.validated_data["quantity"],
            )
        except CartItemNotFoundError as exc:
            return error_response(
                code="CART_ITEM_NOT_FOUND",
                message=str(exc),
                http_status=status.HTTP_404_NOT_FOUND,
            )

        return self.cart_response()

    @extend_schema(
        tags=["Cart"],
        responses={200: CartSerializer},
        description="Remove one cart line",
    )
    def delete(self, request, item_id):
        try:
            remove_item(owner_key=self.owner_key(), item_id=item_id)
        except CartItemNotFoundError as exc:
            return error_response(
                code="CART_ITEM_NOT_FOUND",
                message=str(exc),
                http_status=status.HTTP_404_NOT_FOUND,
            )

        return self.cart_response()


class CartMergeView(CartBaseView):
    """
    Merge the anonymous pre-login snapshot into the customer cart.

    The client must replace its stored snapshot with response["snapshot"]
    (items=[], merged_once=True) so the merge never runs twice.
    """

    @extend_schema(
        tags=["Cart"],
        request=GuestCartSnapshotInputSerializer,
        responses={200: dict},
        examples=[
            OpenApiExample(
                "Guest snapshot",
                value={
                    "items": [
                        {"product_id": "07d0722f-92fd-4a83-b84e-6e25f034a647", "quantity": 2, "size": "M"},
                    ],
                    "merged_once": False,
                    "last_updated": "2024-05-01T10:00:00Z",
                },
                request_only=True,
            ),
        ],
    )
    def post(self, request):
        snapshot = load_snapshot(request.data, drop_invalid=False)
        result = merge_anonymous_cart(customer=request.user, snapshot=snapshot)

        payload = result.to_dict()
        payload["cart"] = CartSerializer(cart_summary(owner_key=self.owner_key())).data
        return Response(payload, status=status.HTTP_200_OK)
