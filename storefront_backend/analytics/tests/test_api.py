# analytics/tests/test_api.py

from unittest import mock

from django.test import TestCase
from rest_framework.test import APIClient

from analytics.services.aggregator import AnalyticsUnavailableError
from orders.tests.helpers import make_admin, make_customer

URL = "/api/admin/analytics/"


class AnalyticsApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = make_admin()
        self.customer = make_customer()

    def test_requires_authentication(self):
        response = self.client.get(URL)
        self.assertEqual(response.status_code, 401)

    def test_customer_is_forbidden(self):
        self.client.force_authenticate(user=self.customer)
        response = self.client.get(URL)
        self.assertEqual(response.status_code, 403)

    def test_admin_gets_dashboard(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get(URL, {"range": "7d"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["range"], "7d")
        for key in ("overview", "period", "trends", "daily_sales", "daily_users", "status_breakdown", "top_products"):
            self.assertIn(key, response.data)
        self.assertEqual(set(response.data["trends"]), {"revenue", "orders", "users", "aov"})

    def test_default_range(self):
        self.client.force_authenticate(user=self.admin)
        response = self.client.get(URL)
        self.assertEqual(response.data["range"], "30d")

    def test_invalid_range(self):
        self.client.force_authenticate(user=self.admin)

        response = self.client.get(URL, {"range": "2w"})

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "INVALID_RANGE")

    def test_unavailable(self):
        self.client.force_authenticate(user=self.admin)

        with mock.patch(
            "analytics.views.api.compute_analytics",
            side_effect=AnalyticsUnavailableError("Analytics are temporarily unavailable"),
        ):
            response = self.client.get(URL)

        self.assertEqual(response.status_code, 503)
        self.assertEqual(response.data["error"]["code"], "ANALYTICS_UNAVAILABLE")
