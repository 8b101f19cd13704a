# analytics/tests/test_aggregator.py

from datetime import timedelta
from unittest import mock

from django.db import DatabaseError
from django.test import SimpleTestCase, TestCase
from django.utils import timezone

from analytics.services.aggregator import (
    SERIES_DAYS,
    AnalyticsUnavailableError,
    InvalidRangeError,
    compute_analytics,
    compute_trend,
    dense_daily_series,
)
from orders.models import Order
from orders.tests.helpers import make_admin, make_customer, make_order, make_product


def _backdate(order, **delta):
    created_at = timezone.now() - timedelta(**delta)
    Order.objects.filter(pk=order.pk).update(created_at=created_at)
    return created_at


class TrendTests(SimpleTestCase):
    def test_growth(self):
        trend = compute_trend(150, 100)
        self.assertEqual(trend["change"], 50.0)
        self.assertEqual(trend["direction"], "up")

    def test_decline(self):
        trend = compute_trend(50, 200)
        self.assertEqual(trend["change"], -75.0)
        self.assertEqual(trend["direction"], "down")

    def test_growth_from_zero_is_neutral(self):
        trend = compute_trend(100, 0)
        self.assertEqual(trend["change"], 0)
        self.assertEqual(trend["direction"], "neutral")

    def test_rounds_to_one_decimal(self):
        self.assertEqual(compute_trend(2, 3)["change"], -33.3)


class DenseSeriesTests(SimpleTestCase):
    def test_fills_missing_days_with_zeros(self):
        end = timezone.localdate()
        rows = {end - timedelta(days=1): {"revenue": 10, "orders": 1}}

        series = dense_daily_series(rows, end=end, days=3, empty={"revenue": 0, "orders": 0})

        self.assertEqual([entry["date"] for entry in series], [
            (end - timedelta(days=2)).isoformat(),
            (end - timedelta(days=1)).isoformat(),
            end.isoformat(),
        ])
        self.assertEqual([entry["orders"] for entry in series], [0, 1, 0])


class ComputeAnalyticsTests(TestCase):
    def setUp(self):
        self.customer = make_customer()
        self.admin = make_admin()
        self.product_a = make_product("SKU-A", name="Linen Shirt", price=100)
        self.product_b = make_product("SKU-B", name="Canvas Tote", price=40)

    def test_invalid_range(self):
        with self.assertRaises(InvalidRangeError):
            compute_analytics("14d")

    def test_range_is_case_insensitive(self):
        self.assertEqual(compute_analytics("7D")["range"], "7d")

    def test_revenue_only_counts_shipped_and_delivered(self):
        make_order(self.customer, status=Order.STATUS_ORDERED, lines=[(self.product_a, 1, 100)])
        make_order(self.customer, status=Order.STATUS_SHIPPED, lines=[(self.product_a, 2, 100)])
        make_order(self.customer, status=Order.STATUS_DELIVERED, lines=[(self.product_a, 3, 100)])
        make_order(self.customer, status=Order.STATUS_CANCELLED, lines=[(self.product_b, 1, 40)])

        data = compute_analytics("30d")

        self.assertEqual(data["overview"]["total_revenue"], 500)
        self.assertEqual(data["overview"]["average_order_value"], 250)
        self.assertEqual(data["overview"]["total_orders"], 4)
        self.assertEqual(data["overview"]["pending_orders"], 1)
        self.assertEqual(data["period"]["revenue"], 500)
        self.assertEqual(data["period"]["orders"], 4)

    def test_paid_but_unshipped_order_has_no_revenue(self):
        make_order(self.customer, status=Order.STATUS_PROCESSING, lines=[(self.product_a, 5, 100)])

        data = compute_analytics("7d")

        self.assertEqual(data["overview"]["total_revenue"], 0)
        self.assertEqual(data["daily_sales"][-1]["revenue"], 0)
        self.assertEqual(data["daily_sales"][-1]["orders"], 1)

    def test_previous_window_feeds_trends(self):
        current = make_order(self.customer, status=Order.STATUS_DELIVERED, lines=[(self.product_a, 3, 100)])
        previous = make_order(self.customer, status=Order.STATUS_DELIVERED, lines=[(self.product_a, 2, 100)])
        older = make_order(self.customer, status=Order.STATUS_DELIVERED, lines=[(self.product_a, 1, 100)])
        _backdate(current, days=1)
        _backdate(previous, days=10)
        _backdate(older, days=20)

        data = compute_analytics("7d")

        self.assertEqual(data["period"]["revenue"], 300)
        self.assertEqual(data["period"]["previous_revenue"], 200)
        self.assertEqual(data["trends"]["revenue"]["change"], 50.0)
        self.assertEqual(data["trends"]["revenue"]["direction"], "up")
        self.assertEqual(data["trends"]["orders"]["direction"], "neutral")
        self.assertEqual(data["overview"]["total_revenue"], 600)

    def test_daily_series_are_dense(self):
        order = make_order(self.customer, status=Order.STATUS_SHIPPED, lines=[(self.product_a, 1, 100)])
        created_at = _backdate(order, days=3)

        data = compute_analytics("30d")

        self.assertEqual(len(data["daily_sales"]), SERIES_DAYS)
        self.assertEqual(len(data["daily_users"]), SERIES_DAYS)
        self.assertEqual(data["daily_sales"][-1]["date"], timezone.localdate().isoformat())

        by_date = {entry["date"]: entry for entry in data["daily_sales"]}
        day = timezone.localdate(created_at).isoformat()
        self.assertEqual(by_date[day], {"date": day, "revenue": 100, "orders": 1})
        self.assertEqual(sum(entry["orders"] for entry in data["daily_sales"]), 1)

        self.assertEqual(data["daily_users"][-1]["new_users"], 2)

    def test_status_breakdown_percentages(self):
        make_order(self.customer, status=Order.STATUS_ORDERED, lines=[(self.product_a, 1, 100)])
        make_order(self.customer, status=Order.STATUS_ORDERED, lines=[(self.product_a, 1, 100)])
        make_order(self.customer, status=Order.STATUS_SHIPPED, lines=[(self.product_a, 1, 100)])

        breakdown = {row["status"]: row for row in compute_analytics("30d")["status_breakdown"]}

        self.assertEqual(breakdown[Order.STATUS_ORDERED]["count"], 2)
        self.assertEqual(breakdown[Order.STATUS_ORDERED]["percentage"], 66.7)
        self.assertEqual(breakdown[Order.STATUS_SHIPPED]["percentage"], 33.3)
        self.assertEqual(breakdown[Order.STATUS_CANCELLED]["count"], 0)

    def test_top_products_use_frozen_prices_of_revenue_orders(self):
        make_order(self.customer, status=Order.STATUS_SHIPPED, lines=[(self.product_a, 3, 90)])
        make_order(self.customer, status=Order.STATUS_ORDERED, lines=[(self.product_b, 10, 40)])

        top = compute_analytics("30d")["top_products"]

        self.assertEqual(len(top), 1)
        self.assertEqual(top[0]["product_id"], str(self.product_a.id))
        self.assertEqual(top[0]["name"], "Linen Shirt")
        self.assertEqual(top[0]["sales"], 3)
        self.assertEqual(top[0]["revenue"], 270)

    def test_conversion_rate(self):
        make_order(self.customer, lines=[(self.product_a, 1, 100)])

        overview = compute_analytics("30d")["overview"]

        self.assertEqual(overview["total_users"], 2)
        self.assertEqual(overview["conversion_rate"], 50.0)

    def test_sub_aggregation_failure_fails_whole_snapshot(self):
        with mock.patch(
            "analytics.services.aggregator._top_products",
            side_effect=DatabaseError("connection lost"),
        ):
            with self.assertRaises(AnalyticsUnavailableError) as ctx:
                compute_analytics("30d")

        self.assertIsInstance(ctx.exception.__cause__, DatabaseError)
