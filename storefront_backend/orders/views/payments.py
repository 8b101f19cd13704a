# orders/views/payments.py

"""
PAYMENT VIEWS

- POST /api/payments/webhook/        gateway confirmation (AllowAny, signed)
- GET  /api/payments/                own payment history, newest first
- GET  /api/payments/<reference>/    paying customer polls status

Webhook rules:
- Signature is verified by the configured gateway adapter.
- Unknown references and replays answer 200 so the gateway stops retrying.
"""

from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.parsers import JSONParser
from rest_framework.permissions import AllowAny, IsAuthenticated
from rest_framework.response import Response
from rest_framework.throttling import AnonRateThrottle
from rest_framework.views import APIView

from orders.models import Payment
from orders.serializers import PaymentSerializer
from orders.services.checkout import (
    InvalidConfirmationError,
    PaymentNotFoundError,
    confirm_gateway_payment,
)
from orders.services.gateway import (
    GatewayError,
    InvalidSignatureError,
    get_gateway,
)
from orders.views.errors import error_response
from permissions.roles import CAP_ORDERS_MANAGE, user_has_capability

logger = logging.getLogger(__name__)


class WebhookThrottle(AnonRateThrottle):
    scope = "webhook"


class PaymentWebhookView(APIView):
    permission_classes = [AllowAny]
    authentication_classes = []
    parser_classes = [JSONParser]
    throttle_classes = [WebhookThrottle]

    @extend_schema(
        tags=["Payments"],
        request=dict,
        responses={
            200: OpenApiResponse(description="Processed / ignored"),
            400: OpenApiResponse(description="Invalid signature or body"),
        },
    )
    def post(self, request, *args, **kwargs):
        # Read the raw body before request.data consumes the stream.
        raw_body = request.body or b""
        payload = request.data if isinstance(request.data, dict) else {}

        logger.info("Payment webhook received")

        try:
            confirmation = get_gateway().parse_confirmation(
                data=payload,
                raw_body=raw_body,
                headers=request.headers,
            )
        except InvalidSignatureError:
            logger.warning("Invalid payment webhook signature")
            return error_response(
                code="INVALID_SIGNATURE",
                message="Invalid signature",
                http_status=status.HTTP_400_BAD_REQUEST,
            )
        except GatewayError as exc:
            return error_response(
                code="INVALID_WEBHOOK",
                message=str(exc),
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        try:
            result = confirm_gateway_payment(
                external_reference=confirmation.external_reference,
                outcome=confirmation.outcome,
                payload=confirmation.raw,
            )
        except PaymentNotFoundError:
            logger.warning(
                "Webhook for unknown payment reference",
                extra={"external_reference": confirmation.external_reference},
            )
            return Response({"ok": True, "detail": "Unknown reference"}, status=status.HTTP_200_OK)
        except InvalidConfirmationError as exc:
            return error_response(
                code="INVALID_WEBHOOK",
                message=str(exc),
                http_status=status.HTTP_400_BAD_REQUEST,
            )

        return Response(
            {
                "ok": True,
                "detail": result.detail,
                "payment_status": result.payment.status,
                "order_ids": [str(o.id) for o in result.orders],
            },
            status=status.HTTP_200_OK,
        )


class PaymentStatusView(APIView):
    permission_classes = [IsAuthenticated]

    @extend_schema(tags=["Payments"], responses={200: PaymentSerializer})
    def get(self, request, reference):
        queryset = Payment.objects.all()
        if not user_has_capability(request.user, CAP_ORDERS_MANAGE):
            queryset = queryset.filter(customer=request.user)

        payment = get_object_or_404(queryset, external_reference=reference)
        return Response(PaymentSerializer(payment).data, status=status.HTTP_200_OK)


@extend_schema(tags=["Payments"])
class PaymentHistoryView(generics.ListAPIView):
    permission_classes = [IsAuthenticated]
    serializer_class = PaymentSerializer

    def get_queryset(self):
        return (
            Payment.objects.filter(customer=self.request.user)
            .prefetch_related("orders")
            .order_by("-created_at")
        )
