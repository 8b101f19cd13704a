# analytics/views/api.py

"""
ANALYTICS API (ADMIN DASHBOARD)

GET /api/admin/analytics/?range=7d|30d|90d|1y   (default 30d)

Contract:
- Read-only. Numbers are whole currency units.
- 400 INVALID_RANGE for any other range value.
- 503 ANALYTICS_UNAVAILABLE when any sub-aggregation failed; the dashboard
  is never rendered from partial numbers.

Security:
- Admin capability (CAP_ANALYTICS_VIEW)
"""

from __future__ import annotations

from drf_spectacular.utils import OpenApiParameter, OpenApiResponse, extend_schema
from rest_framework import status
from rest_framework.permissions import IsAuthenticated
from rest_framework.response import Response
from rest_framework.views import APIView

from analytics.services.aggregator import (
    DEFAULT_RANGE,
    RANGE_DAYS,
    AnalyticsUnavailableError,
    InvalidRangeError,
    compute_analytics,
)
from permissions.roles import CAP_ANALYTICS_VIEW, HasCapability


def error_response(*, code: str, message: str, http_status: int):
    return Response(
        {"error": {"code": code, "message": message}},
        status=http_status,
    )


class AnalyticsView(APIView):
    permission_classes = [IsAuthenticated, HasCapability]
    required_capability = CAP_ANALYTICS_VIEW

    @extend_schema(
        tags=["Admin Analytics"],
        parameters=[
            OpenApiParameter(
                name="range",
                type=str,
                location=OpenApiParameter.QUERY,
                required=False,
                enum=list(RANGE_DAYS),
                description="Reporting window, defaults to 30d",
            )
        ],
        responses={
            200: OpenApiResponse(description="Dashboard snapshot"),
            400: OpenApiResponse(description="Unsupported range"),
            503: OpenApiResponse(description="A sub-aggregation failed"),
        },
    )
    def get(self, request):
        range_code = request.query_params.get("range") or DEFAULT_RANGE

        try:
            data = compute_analytics(range_code)
        except InvalidRangeError as exc:
            return error_response(
                code="INVALID_RANGE",
                message=str(exc),
                http_status=status.HTTP_400_BAD_REQUEST,
            )
        except AnalyticsUnavailableError as exc:
            return error_response(
                code="ANALYTICS_UNAVAILABLE",
                message=str(exc),
                http_status=status.HTTP_503_SERVICE_UNAVAILABLE,
            )

        return Response(data, status=status.HTTP_200_OK)
