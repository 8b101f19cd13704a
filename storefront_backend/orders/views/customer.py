# orders/views/customer.py

"""
CUSTOMER ORDER VIEWS

- List / retrieve own orders (with progress_index for the timeline)
- Cancel own order before shipment (stock restored)
"""

from __future__ import annotations

from drf_spectacular.utils import extend_schema
from rest_framework import generics, status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from orders.models import Order
from orders.serializers import OrderSerializer
from orders.services.order_lifecycle import OrderLifecycleError
from orders.services.status_updates import cancel_order
from orders.views.errors import order_error_response
from permissions.roles import CAP_ORDERS_VIEW_OWN, HasCapability


class CustomerOrderQuerysetMixin:
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_ORDERS_VIEW_OWN
    serializer_class = OrderSerializer

    def get_queryset(self):
        return (
            Order.objects.filter(customer=self.request.user)
            .select_related("payment")
            .prefetch_related("items__product")
        )


@extend_schema(tags=["Orders"])
class CustomerOrderListView(CustomerOrderQuerysetMixin, generics.ListAPIView):
    filterset_fields = ["status"]


@extend_schema(tags=["Orders"])
class CustomerOrderDetailView(CustomerOrderQuerysetMixin, generics.RetrieveAPIView):
    lookup_url_kwarg = "order_id"


class CustomerOrderCancelView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_ORDERS_VIEW_OWN

    @extend_schema(
        tags=["Orders"],
        request=None,
        responses={200: OrderSerializer},
        description="Cancel an order that has not shipped yet.",
    )
    def post(self, request, order_id):
        try:
            order = cancel_order(order_id=order_id, customer=request.user)
        except OrderLifecycleError as exc:
            return order_error_response(exc)

        order = (
            Order.objects.select_related("payment")
            .prefetch_related("items__product")
            .get(id=order.id)
        )
        return Response(OrderSerializer(order).data, status=status.HTTP_200_OK)
