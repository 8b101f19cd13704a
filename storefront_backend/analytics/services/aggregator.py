# analytics/services/aggregator.py

"""
======================================================
PATH: analytics/services/aggregator.py
======================================================
ANALYTICS AGGREGATOR (READ-ONLY)

compute_analytics(range_code) -> dashboard snapshot

Windows:
- window          = [now - d, now)
- previous window = [window_start - d, window_start)
  (same length, contiguous, non-overlapping)

Revenue recognition:
- Only SHIPPED / DELIVERED orders carry revenue, whatever the payment
  status. ORDERED .. PROCESSING and CANCELLED contribute 0.

Execution:
- Every sub-aggregation is an independent query set, fanned out through
  backend.concurrency.run_parallel and joined before the response.
- Any failing sub-aggregation fails the whole snapshot
  (AnalyticsUnavailableError); no partial numbers are returned.

Documented limitations:
- compute_trend(): change is 0 when previous is 0, so growth from zero
  shows as "neutral".
- Top products: ties on quantity keep database iteration order
  (non-deterministic). Revenue is sum(price_at_time x quantity).
"""

from __future__ import annotations

import logging
from datetime import date, datetime, time, timedelta
from functools import partial

from django.conf import settings
from django.contrib.auth import get_user_model
from django.db.models import Count, F, Q, Sum
from django.db.models.functions import TruncDate
from django.utils import timezone

from backend.concurrency import run_parallel
from orders.models import Order, OrderItem
from orders.services.order_lifecycle import ALL_ORDER_STATUSES, ORDER_FLOW, REVENUE_STATUSES
from products.models import Product

logger = logging.getLogger(__name__)

RANGE_DAYS = {
    "7d": 7,
    "30d": 30,
    "90d": 90,
    "1y": 365,
}

DEFAULT_RANGE = "30d"
SERIES_DAYS = 30
TOP_PRODUCTS_LIMIT = 5

STATUS_ORDER = ORDER_FLOW + sorted(ALL_ORDER_STATUSES - set(ORDER_FLOW))


# ============================================================
# DOMAIN ERRORS
# ============================================================


class AnalyticsError(Exception):
    pass


class InvalidRangeError(AnalyticsError):
    pass


class AnalyticsUnavailableError(AnalyticsError):
    pass


# ============================================================
# PURE HELPERS
# ============================================================


def range_days(range_code: str) -> int:
    try:
        return RANGE_DAYS[str(range_code).strip().lower()]
    except KeyError as exc:
        raise InvalidRangeError(
            f"Unsupported range '{range_code}'. Use one of: {', '.join(RANGE_DAYS)}"
        ) from exc


def compute_trend(current, previous) -> dict:
    """
    change% = (current - previous) / previous * 100, or 0 when previous is 0.
    """
    current = current or 0
    previous = previous or 0

    change = 0.0
    if previous > 0:
        change = round((current - previous) / previous * 100, 1)

    if change > 0:
        direction = "up"
    elif change < 0:
        direction = "down"
    else:
        direction = "neutral"

    return {
        "current": current,
        "previous": previous,
        "change": change,
        "direction": direction,
    }


def _percentage(part: int, whole: int) -> float:
    if not whole:
        return 0.0
    return round(part / whole * 100, 1)


def _average(total: int, count: int) -> int:
    if not count:
        return 0
    return int(round(total / count))


def dense_daily_series(rows: dict[date, dict], *, end: date, days: int, empty: dict) -> list[dict]:
    """
    One entry per calendar day in [end - days + 1, end]; missing days get
    a copy of `empty`.
    """
    start = end - timedelta(days=days - 1)
    series = []
    for offset in range(days):
        day = start + timedelta(days=offset)
        series.append({"date": day.isoformat(), **(rows.get(day) or empty)})
    return series


def _start_of_day(day: date) -> datetime:
    return timezone.make_aware(datetime.combine(day, time.min), timezone.get_current_timezone())


def _revenue_filter(prefix: str = "") -> Q:
    return Q(**{f"{prefix}status__in": list(REVENUE_STATUSES)})


# ============================================================
# SUB-AGGREGATIONS (each independent, one or two queries)
# ============================================================


def _counts(*, now: datetime) -> dict:
    User = get_user_model()
    today_start = _start_of_day(timezone.localdate(now))

    return {
        "total_products": Product.objects.filter(is_active=True).count(),
        "total_users": User.objects.count(),
        "total_orders": Order.objects.count(),
        "today_orders": Order.objects.filter(created_at__gte=today_start, created_at__lt=now).count(),
        "pending_orders": Order.objects.filter(status=Order.STATUS_ORDERED).count(),
    }


def _lifetime_revenue() -> dict:
    agg = Order.objects.filter(_revenue_filter()).aggregate(
        revenue=Sum("total_amount"),
        orders=Count("id"),
    )
    revenue = int(agg["revenue"] or 0)
    return {
        "total_revenue": revenue,
        "average_order_value": _average(revenue, agg["orders"]),
    }


def _window_stats(*, start: datetime, end: datetime) -> dict:
    agg = Order.objects.filter(created_at__gte=start, created_at__lt=end).aggregate(
        orders=Count("id"),
        revenue=Sum("total_amount", filter=_revenue_filter()),
        revenue_orders=Count("id", filter=_revenue_filter()),
    )
    revenue = int(agg["revenue"] or 0)
    return {
        "orders": int(agg["orders"] or 0),
        "revenue": revenue,
        "average_order_value": _average(revenue, agg["revenue_orders"]),
    }


def _new_users(*, start: datetime, end: datetime) -> int:
    User = get_user_model()
    return User.objects.filter(created_at__gte=start, created_at__lt=end).count()


def _daily_sales(*, now: datetime) -> list[dict]:
    today = timezone.localdate(now)
    start = _start_of_day(today - timedelta(days=SERIES_DAYS - 1))

    rows = (
        Order.objects.filter(created_at__gte=start, created_at__lt=now)
        .annotate(day=TruncDate("created_at", tzinfo=timezone.get_current_timezone()))
        .values("day")
        .annotate(
            orders=Count("id"),
            revenue=Sum("total_amount", filter=_revenue_filter()),
        )
        .order_by("day")
    )

    by_day = {
        row["day"]: {"revenue": int(row["revenue"] or 0), "orders": int(row["orders"] or 0)}
        for row in rows
    }
    return dense_daily_series(by_day, end=today, days=SERIES_DAYS, empty={"revenue": 0, "orders": 0})


def _daily_users(*, now: datetime) -> list[dict]:
    User = get_user_model()
    today = timezone.localdate(now)
    start = _start_of_day(today - timedelta(days=SERIES_DAYS - 1))

    rows = (
        User.objects.filter(created_at__gte=start, created_at__lt=now)
        .annotate(day=TruncDate("created_at", tzinfo=timezone.get_current_timezone()))
        .values("day")
        .annotate(new_users=Count("id"))
        .order_by("day")
    )

    by_day = {row["day"]: {"new_users": int(row["new_users"])} for row in rows}
    return dense_daily_series(by_day, end=today, days=SERIES_DAYS, empty={"new_users": 0})


def _status_breakdown(*, start: datetime, end: datetime) -> list[dict]:
    rows = (
        Order.objects.filter(created_at__gte=start, created_at__lt=end)
        .values("status")
        .annotate(count=Count("id"))
    )
    counts = {row["status"]: int(row["count"]) for row in rows}
    total = sum(counts.values())

    return [
        {
            "status": status,
            "count": counts.get(status, 0),
            "percentage": _percentage(counts.get(status, 0), total),
        }
        for status in STATUS_ORDER
    ]


def _top_products(*, start: datetime, end: datetime) -> list[dict]:
    rows = (
        OrderItem.objects.filter(
            _revenue_filter("order__"),
            order__created_at__gte=start,
            order__created_at__lt=end,
        )
        .values("product_id", "product__name")
        .annotate(
            sales=Sum("quantity"),
            revenue=Sum(F("price_at_time") * F("quantity")),
        )
        .order_by("-sales")[:TOP_PRODUCTS_LIMIT]
    )

    return [
        {
            "product_id": str(row["product_id"]),
            "name": row["product__name"],
            "sales": int(row["sales"] or 0),
            "revenue": int(row["revenue"] or 0),
        }
        for row in rows
    ]


# ============================================================
# ENTRYPOINT
# ============================================================


def compute_analytics(
    range_code: str = DEFAULT_RANGE,
    *,
    now: datetime | None = None,
    parallel: bool | None = None,
) -> dict:
    days = range_days(range_code)
    now = now or timezone.now()

    window_start = now - timedelta(days=days)
    previous_start = window_start - timedelta(days=days)

    tasks = {
        "counts": partial(_counts, now=now),
        "lifetime": _lifetime_revenue,
        "current": partial(_window_stats, start=window_start, end=now),
        "previous": partial(_window_stats, start=previous_start, end=window_start),
        "new_users": partial(_new_users, start=window_start, end=now),
        "previous_new_users": partial(_new_users, start=previous_start, end=window_start),
        "daily_sales": partial(_daily_sales, now=now),
        "daily_users": partial(_daily_users, now=now),
        "status_breakdown": partial(_status_breakdown, start=window_start, end=now),
        "top_products": partial(_top_products, start=window_start, end=now),
    }

    if parallel is None:
        parallel = getattr(settings, "ANALYTICS_PARALLEL", True)

    try:
        results = run_parallel(
            tasks,
            parallel=parallel,
            max_workers=getattr(settings, "ANALYTICS_MAX_WORKERS", 8),
        )
    except Exception as exc:
        logger.exception("Analytics aggregation failed", extra={"range": range_code})
        raise AnalyticsUnavailableError("Analytics are temporarily unavailable") from exc

    counts = results["counts"]
    lifetime = results["lifetime"]
    current = results["current"]
    previous = results["previous"]

    overview = {
        **counts,
        **lifetime,
        "conversion_rate": _percentage(counts["total_orders"], counts["total_users"]),
    }

    return {
        "range": str(range_code).strip().lower(),
        "generated_at": now.isoformat(),
        "window": {"start": window_start.isoformat(), "end": now.isoformat()},
        "previous_window": {"start": previous_start.isoformat(), "end": window_start.isoformat()},
        "overview": overview,
        "period": {
            "orders": current["orders"],
            "revenue": current["revenue"],
            "average_order_value": current["average_order_value"],
            "new_users": results["new_users"],
            "previous_orders": previous["orders"],
            "previous_revenue": previous["revenue"],
            "previous_average_order_value": previous["average_order_value"],
            "previous_new_users": results["previous_new_users"],
        },
        "trends": {
            "revenue": compute_trend(current["revenue"], previous["revenue"]),
            "orders": compute_trend(current["orders"], previous["orders"]),
            "users": compute_trend(results["new_users"], results["previous_new_users"]),
            "aov": compute_trend(current["average_order_value"], previous["average_order_value"]),
        },
        "daily_sales": results["daily_sales"],
        "daily_users": results["daily_users"],
        "status_breakdown": results["status_breakdown"],
        "top_products": results["top_products"],
    }
