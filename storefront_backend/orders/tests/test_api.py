# orders/tests/test_api.py

from datetime import timedelta

from django.test import TestCase
from rest_framework.test import APIClient

from orders.models import Order, Payment
from orders.services.gateway import FakeGateway, reset_gateway, set_gateway

from .helpers import ADDRESS, make_admin, make_customer, make_order, make_product


class CheckoutApiTests(TestCase):
    def setUp(self):
        self.gateway = FakeGateway()
        set_gateway(self.gateway)

        self.client = APIClient()
        self.customer = make_customer()
        self.client.force_authenticate(user=self.customer)

        self.product_a = make_product("SKU-A", price=50_000, stock=10)
        self.product_b = make_product("SKU-B", price=30_000, stock=10)
        self.payload = {
            "items": [
                {"product_id": str(self.product_a.id), "quantity": 2},
                {"product_id": str(self.product_b.id), "quantity": 1},
            ],
            "shipping_address": ADDRESS,
        }

    def tearDown(self):
        reset_gateway()

    def test_cod_checkout(self):
        response = self.client.post("/api/orders/checkout/cod/", self.payload, format="json")

        self.assertEqual(response.status_code, 201)
        order = response.data["order"]
        self.assertEqual(order["status"], Order.STATUS_ORDERED)
        self.assertEqual(order["total_amount"], 130_000)
        self.assertTrue(order["external_reference"].startswith("COD-"))

    def test_cod_checkout_rejects_incomplete_address(self):
        payload = {**self.payload, "shipping_address": {"first_name": "Ana"}}

        response = self.client.post("/api/orders/checkout/cod/", payload, format="json")

        self.assertEqual(response.status_code, 400)
        self.assertEqual(response.data["error"]["code"], "INVALID_SHIPPING_ADDRESS")
        self.assertEqual(Payment.objects.count(), 0)

    def test_cod_checkout_rejects_non_positive_quantity(self):
        payload = {**self.payload, "items": [{"product_id": str(self.product_a.id), "quantity": 0}]}
        response = self.client.post("/api/orders/checkout/cod/", payload, format="json")
        self.assertEqual(response.status_code, 400)

    def test_insufficient_stock_is_conflict(self):
        payload = {**self.payload, "items": [{"product_id": str(self.product_a.id), "quantity": 50}]}
        response = self.client.post("/api/orders/checkout/cod/", payload, format="json")
        self.assertEqual(response.status_code, 409)

    def test_gateway_checkout_then_webhook(self):
        response = self.client.post("/api/orders/checkout/gateway/", self.payload, format="json")
        self.assertEqual(response.status_code, 201)
        reference = response.data["external_reference"]
        self.assertTrue(response.data["checkout_url"])
        self.assertEqual(Order.objects.count(), 0)

        webhook = APIClient()
        response = webhook.post(
            "/api/payments/webhook/",
            {"external_reference": reference, "outcome": "PAID"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["payment_status"], Payment.STATUS_PAID)
        self.assertEqual(Order.objects.count(), 1)

        response = self.client.get(f"/api/payments/{reference}/")
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], Payment.STATUS_PAID)
        self.assertEqual(len(response.data["order_ids"]), 1)

    def test_gateway_down_is_retriable_502(self):
        self.gateway.should_succeed = False

        response = self.client.post("/api/orders/checkout/gateway/", self.payload, format="json")

        self.assertEqual(response.status_code, 502)
        self.assertTrue(response.data["error"]["retriable"])
        self.assertEqual(Order.objects.count(), 0)

    def test_webhook_unknown_reference_is_acknowledged(self):
        response = APIClient().post(
            "/api/payments/webhook/",
            {"external_reference": "999", "outcome": "PAID"},
            format="json",
        )
        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["detail"], "Unknown reference")

    def test_webhook_malformed_body(self):
        response = APIClient().post("/api/payments/webhook/", {"outcome": "PAID"}, format="json")
        self.assertEqual(response.status_code, 400)

    def test_other_customer_cannot_poll_payment(self):
        order = make_order(make_customer("other@example.com"), lines=[(self.product_a, 1, 50_000)])
        response = self.client.get(f"/api/payments/{order.payment.external_reference}/")
        self.assertEqual(response.status_code, 404)

    def test_poll_cod_reference(self):
        order = make_order(self.customer, lines=[(self.product_a, 1, 50_000)])

        response = self.client.get(f"/api/payments/{order.payment.external_reference}/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["method"], Payment.METHOD_COD)
        self.assertEqual(response.data["orders"][0]["order_number"], order.order_number)

    def test_get_webhook_is_not_a_status_poll(self):
        response = self.client.get("/api/payments/webhook/")
        self.assertEqual(response.status_code, 405)


class PaymentHistoryApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.customer = make_customer()
        self.client.force_authenticate(user=self.customer)
        self.product = make_product("SKU-1", price=100, stock=5)

    def test_lists_only_own_payments_newest_first(self):
        older = make_order(self.customer, lines=[(self.product, 1, 100)])
        newer = make_order(self.customer, lines=[(self.product, 2, 100)])
        make_order(make_customer("other@example.com"), lines=[(self.product, 1, 100)])

        Payment.objects.filter(pk=older.payment_id).update(
            created_at=newer.payment.created_at - timedelta(days=1)
        )

        response = self.client.get("/api/payments/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 2)
        rows = response.data["results"]
        self.assertEqual(
            [row["external_reference"] for row in rows],
            [newer.payment.external_reference, older.payment.external_reference],
        )
        self.assertEqual(
            rows[0]["orders"][0],
            {
                "id": str(newer.id),
                "order_number": newer.order_number,
                "status": Order.STATUS_ORDERED,
                "total_amount": 200,
                "created_at": rows[0]["orders"][0]["created_at"],
            },
        )

    def test_requires_authentication(self):
        self.assertEqual(APIClient().get("/api/payments/").status_code, 401)


class CustomerOrderApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.customer = make_customer()
        self.client.force_authenticate(user=self.customer)
        self.product = make_product("SKU-1", price=100, stock=5)

    def test_lists_only_own_orders_with_discrepancy(self):
        mine = make_order(self.customer, lines=[(self.product, 2, 100)], payment_amount=208)
        make_order(make_customer("other@example.com"), lines=[(self.product, 1, 100)])

        response = self.client.get("/api/orders/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)
        row = response.data["results"][0]
        self.assertEqual(row["id"], str(mine.id))
        self.assertEqual(row["total_amount"], 200)
        self.assertEqual(row["payment_amount"], 208)
        self.assertEqual(row["amount_discrepancy"], 8)
        self.assertEqual(row["progress_index"], 0)

    def test_cancel_own_order(self):
        order = make_order(self.customer, lines=[(self.product, 2, 100)])

        response = self.client.post(f"/api/orders/{order.id}/cancel/")

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], Order.STATUS_CANCELLED)
        self.assertEqual(response.data["progress_index"], -1)

    def test_cancel_shipped_order_rejected(self):
        order = make_order(self.customer, status=Order.STATUS_SHIPPED, lines=[(self.product, 1, 100)])
        response = self.client.post(f"/api/orders/{order.id}/cancel/")
        self.assertEqual(response.status_code, 409)

    def test_customer_cannot_use_admin_api(self):
        response = self.client.get("/api/admin/orders/")
        self.assertEqual(response.status_code, 403)


class AdminOrderApiTests(TestCase):
    def setUp(self):
        self.client = APIClient()
        self.admin = make_admin()
        self.client.force_authenticate(user=self.admin)

        self.customer = make_customer()
        self.product = make_product("SKU-1", price=100, stock=5)
        self.order = make_order(self.customer, lines=[(self.product, 1, 100)])

    def test_put_status(self):
        response = self.client.put(
            f"/api/admin/orders/{self.order.id}/",
            {"status": "SHIPPED", "tracking_number": "TRK-9"},
            format="json",
        )

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["status"], Order.STATUS_SHIPPED)
        self.assertEqual(response.data["tracking_number"], "TRK-9")

    def test_put_out_of_terminal_is_conflict(self):
        Order.objects.filter(id=self.order.id).update(status=Order.STATUS_DELIVERED)

        response = self.client.put(f"/api/admin/orders/{self.order.id}/", {"status": "ORDERED"}, format="json")

        self.assertEqual(response.status_code, 409)
        self.assertEqual(response.data["error"]["code"], "INVALID_TRANSITION")

    def test_list_filter_by_status(self):
        make_order(self.customer, status=Order.STATUS_SHIPPED, lines=[(self.product, 1, 100)])

        response = self.client.get("/api/admin/orders/", {"status": "SHIPPED"})

        self.assertEqual(response.status_code, 200)
        self.assertEqual(response.data["count"], 1)

    def test_delete_requires_cancelled(self):
        response = self.client.delete(f"/api/admin/orders/{self.order.id}/")
        self.assertEqual(response.status_code, 409)

        self.client.put(f"/api/admin/orders/{self.order.id}/", {"status": "CANCELLED"}, format="json")
        response = self.client.delete(f"/api/admin/orders/{self.order.id}/")

        self.assertEqual(response.status_code, 204)
        self.assertFalse(Order.objects.filter(id=self.order.id).exists())
        self.assertTrue(Payment.objects.filter(id=self.order.payment_id).exists())
