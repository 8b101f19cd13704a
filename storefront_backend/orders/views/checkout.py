# orders/views/checkout.py

"""
CHECKOUT VIEWS (CUSTOMER)

- POST /api/orders/checkout/gateway/ -> {checkout_url, external_reference}
  (no Order yet; created on confirmed payment)
- POST /api/orders/checkout/cod/ -> {order: {...}}

Money is server-owned: prices come from the catalog, never the payload.
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiExample, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import UserRateThrottle
from rest_framework.views import APIView

from orders.serializers import CheckoutInputSerializer
from orders.services.checkout import (
    CheckoutError,
    initiate_gateway_checkout,
    place_cod_order,
)
from orders.views.errors import checkout_error_response
from permissions.roles import CAP_CHECKOUT, HasCapability
from products.services.inventory import InventoryError


class CheckoutThrottle(UserRateThrottle):
    scope = "checkout"


_CHECKOUT_EXAMPLE = OpenApiExample(
    "Two lines, standard shipping",
    value={
        "items": [
            {"product_id": "07d0722f-92fd-4a83-b84e-6e25f034a647", "quantity": 2, "size": "M"},
            {"product_id": "5b3b4a1e-4c1f-4bd4-9d7e-13d1f2f0b9aa", "quantity": 1},
        ],
        "shipping_address": {
            "first_name": "Ana",
            "last_name": "Silva",
            "street": "12 Harbour Road",
            "city": "Porto",
            "postal_code": "4000-001",
        },
        "shipping_method": "standard",
    },
    request_only=True,
)


class CheckoutBaseView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_CHECKOUT
    throttle_classes = [CheckoutThrottle]

    def validated_input(self, request) -> dict:
        serializer = CheckoutInputSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        return serializer.validated_data


class GatewayCheckoutView(CheckoutBaseView):
    @extend_schema(
        tags=["Checkout"],
        request=CheckoutInputSerializer,
        responses={
            201: OpenApiResponse(description="Checkout URL + external reference"),
            400: OpenApiResponse(description="Validation error"),
            409: OpenApiResponse(description="Insufficient stock"),
            502: OpenApiResponse(description="Gateway unavailable (retriable)"),
        },
        examples=[_CHECKOUT_EXAMPLE],
        description="Create a PENDING gateway payment and return the hosted checkout URL.",
    )
    def post(self, request):
        data = self.validated_input(request)

        try:
            result = initiate_gateway_checkout(
                customer=request.user,
                lines=data["items"],
                shipping_address=data.get("shipping_address"),
                shipping_method=data.get("shipping_method"),
            )
        except (CheckoutError, InventoryError) as exc:
            return checkout_error_response(exc)

        return Response(
            {
                "checkout_url": result.checkout_url,
                "external_reference": result.external_reference,
                "amount": result.payment.amount,
                "payment_status": result.payment.status,
            },
            status=status.HTTP_201_CREATED,
        )


class CODCheckoutView(CheckoutBaseView):
    @extend_schema(
        tags=["Checkout"],
        request=CheckoutInputSerializer,
        responses={
            201: OpenApiResponse(description="Created order summary"),
            400: OpenApiResponse(description="Validation error / incomplete address"),
            409: OpenApiResponse(description="Insufficient stock"),
        },
        examples=[_CHECKOUT_EXAMPLE],
        description="Place a cash-on-delivery order (Payment + Order created atomically).",
    )
    def post(self, request):
        data = self.validated_input(request)

        try:
            order = place_cod_order(
                customer=request.user,
                lines=data["items"],
                shipping_address=data.get("shipping_address"),
                shipping_method=data.get("shipping_method"),
            )
        except (CheckoutError, InventoryError) as exc:
            return checkout_error_response(exc)

        return Response(
            {
                "order": {
                    "id": str(order.id),
                    "order_number": order.order_number,
                    "external_reference": order.payment.external_reference,
                    "status": order.status,
                    "total_amount": order.total_amount,
                    "payment_amount": order.payment.amount,
                }
            },
            status=status.HTTP_201_CREATED,
        )
