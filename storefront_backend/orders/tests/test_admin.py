# orders/tests/test_admin.py

from django.contrib import admin
from django.contrib.auth import get_user_model
from django.test import RequestFactory, TestCase
from django.urls import reverse

from orders.admin import OrderAdmin, PaymentAdmin
from orders.models import Order, Payment

from .helpers import make_customer, make_order, make_product

User = get_user_model()


class OrderAdminTests(TestCase):
    """
    Django admin guards.

    GUARANTEES:
    - Status is read-only on order and payment change forms
    - Bulk deletes go through delete_order (CANCELLED only)
    """

    def setUp(self):
        self.superuser = User.objects.create_superuser(email="root@example.com", password="pass")
        self.client.force_login(self.superuser)

        self.request = RequestFactory().get("/")
        self.request.user = self.superuser

        customer = make_customer()
        product = make_product("SKU-1", price=100, stock=10)
        self.shipped = make_order(customer, status=Order.STATUS_SHIPPED, lines=[(product, 1, 100)])
        self.cancelled = make_order(customer, status=Order.STATUS_CANCELLED, lines=[(product, 1, 100)])
        self.changelist = reverse("admin:orders_order_changelist")

    def test_order_status_not_editable(self):
        form = OrderAdmin(Order, admin.site).get_form(self.request, self.shipped)
        self.assertNotIn("status", form.base_fields)

    def test_payment_status_not_editable(self):
        form = PaymentAdmin(Payment, admin.site).get_form(self.request, self.shipped.payment)
        self.assertNotIn("status", form.base_fields)

    def test_delete_selected_is_not_offered(self):
        actions = OrderAdmin(Order, admin.site).get_actions(self.request)

        self.assertNotIn("delete_selected", actions)
        self.assertIn("delete_cancelled_orders", actions)

    def test_delete_selected_post_keeps_shipped_order(self):
        self.client.post(
            self.changelist,
            {"action": "delete_selected", "_selected_action": [str(self.shipped.id)]},
        )

        self.assertTrue(Order.objects.filter(pk=self.shipped.pk).exists())

    def test_delete_action_removes_only_cancelled(self):
        response = self.client.post(
            self.changelist,
            {
                "action": "delete_cancelled_orders",
                "_selected_action": [str(self.shipped.id), str(self.cancelled.id)],
            },
            follow=True,
        )

        self.assertTrue(Order.objects.filter(pk=self.shipped.pk).exists())
        self.assertFalse(Order.objects.filter(pk=self.cancelled.pk).exists())

        texts = [str(m) for m in response.context["messages"]]
        self.assertIn("1 of 2 deleted", texts)

    def test_change_form_delete_only_for_cancelled(self):
        model_admin = OrderAdmin(Order, admin.site)

        self.assertFalse(model_admin.has_delete_permission(self.request, self.shipped))
        self.assertTrue(model_admin.has_delete_permission(self.request, self.cancelled))

    def test_change_form_delete_of_shipped_order_is_refused(self):
        url = reverse("admin:orders_order_delete", args=[self.shipped.pk])

        response = self.client.post(url, {"post": "yes"})

        self.assertEqual(response.status_code, 403)
        self.assertTrue(Order.objects.filter(pk=self.shipped.pk).exists())
