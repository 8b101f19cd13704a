# orders/views/admin.py

"""
ADMIN ORDER VIEWS

- GET    /api/admin/orders/             list, filterable
- GET    /api/admin/orders/<uuid>/      detail
- PUT    /api/admin/orders/<uuid>/      set status (+ tracking / ETA)
- PATCH  /api/admin/orders/<uuid>/      same, partial
- DELETE /api/admin/orders/<uuid>/      hard delete (CANCELLED only)

Bulk updates are a fan-out over the single update, not an endpoint.
"""

from __future__ import annotations

import logging

from django.shortcuts import get_object_or_404
from drf_spectacular.utils import OpenApiResponse, extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.filters import AdminOrderFilter
from orders.models import Order
from orders.serializers import AdminOrderUpdateSerializer, OrderSerializer
from orders.services.order_lifecycle import OrderLifecycleError
from orders.services.status_updates import delete_order, set_order_status
from orders.views.errors import order_error_response
from permissions.roles import CAP_ORDERS_MANAGE, HasCapability

logger = logging.getLogger(__name__)


def _admin_queryset():
    return (
        Order.objects.select_related("payment", "customer")
        .prefetch_related("items__product")
    )


@extend_schema(tags=["Admin Orders"])
class AdminOrderListView(generics.ListAPIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_ORDERS_MANAGE
    serializer_class = OrderSerializer
    filterset_class = AdminOrderFilter

    def get_queryset(self):
        return _admin_queryset()


class AdminOrderDetailView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_ORDERS_MANAGE

    def _render(self, order_id, http_status=status.HTTP_200_OK):
        order = get_object_or_404(_admin_queryset(), id=order_id)
        return Response(OrderSerializer(order).data, status=http_status)

    @extend_schema(tags=["Admin Orders"], responses={200: OrderSerializer})
    def get(self, request, order_id):
        return self._render(order_id)

    @extend_schema(
        tags=["Admin Orders"],
        request=AdminOrderUpdateSerializer,
        responses={
            200: OrderSerializer,
            404: OpenApiResponse(description="Order not found"),
            409: OpenApiResponse(description="Order is in a terminal status"),
        },
        description="Set order status. Entering CANCELLED restores stock.",
    )
    def put(self, request, order_id):
        serializer = AdminOrderUpdateSerializer(data=request.data)
        serializer.is_valid(raise_exception=True)
        data = serializer.validated_data

        target = data.get("status")
        if target is None:
            target = get_object_or_404(Order, id=order_id).status

        try:
            set_order_status(
                order_id=order_id,
                status=target,
                tracking_number=data.get("tracking_number"),
                estimated_delivery=data.get("estimated_delivery"),
            )
        except OrderLifecycleError as exc:
            return order_error_response(exc)

        return self._render(order_id)

    @extend_schema(
        tags=["Admin Orders"],
        request=AdminOrderUpdateSerializer,
        responses={200: OrderSerializer},
    )
    def patch(self, request, order_id):
        return self.put(request, order_id)

    @extend_schema(
        tags=["Admin Orders"],
        responses={
            204: OpenApiResponse(description="Deleted"),
            409: OpenApiResponse(description="Only CANCELLED orders can be deleted"),
        },
        description="Hard delete a CANCELLED order. The payment is kept.",
    )
    def delete(self, request, order_id):
        try:
            delete_order(order_id=order_id)
        except OrderLifecycleError as exc:
            return order_error_response(exc)

        logger.info(
            "Admin deleted order",
            extra={"order_id": str(order_id), "admin_id": str(request.user.id)},
        )
        return Response(status=status.HTTP_204_NO_CONTENT)
