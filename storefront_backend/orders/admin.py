# orders/admin.py

"""
ORDER / PAYMENT ADMIN

Rules:
- Status is never edited through the change form. Order status moves go
  through the bulk actions (set_order_status_bulk); payment status is set
  only by gateway confirmation.
- Deletes go through delete_order() (CANCELLED orders only); Django's
  delete_selected is disabled.
"""

from django.contrib import admin, messages

from orders.models import Order, OrderItem, Payment
from orders.services.order_lifecycle import OrderLifecycleError
from orders.services.status_updates import delete_order, set_order_status_bulk


# ======================================================
# BULK ACTIONS
# ======================================================


def _bulk_status_action(status: str):
    def action(modeladmin, request, queryset):
        ids = list(queryset.values_list("id", flat=True))
        result = set_order_status_bulk(order_ids=ids, status=status)

        level = messages.SUCCESS if not result.failures else messages.WARNING
        modeladmin.message_user(request, result.summary, level=level)
        for failure in result.failures:
            modeladmin.message_user(request, f"{failure.order_id}: {failure.error}", level=messages.ERROR)

    action.__name__ = f"mark_{status.lower()}"
    action.short_description = f"Mark selected orders as {status}"
    return action


@admin.action(description="Delete selected orders (CANCELLED only)")
def delete_cancelled_orders(modeladmin, request, queryset):
    ids = list(queryset.values_list("id", flat=True))
    deleted = 0
    errors = []

    for order_id in ids:
        try:
            delete_order(order_id=order_id)
        except OrderLifecycleError as exc:
            errors.append(f"{order_id}: {exc}")
            continue
        deleted += 1

    level = messages.SUCCESS if not errors else messages.WARNING
    modeladmin.message_user(request, f"{deleted} of {len(ids)} deleted", level=level)
    for error in errors:
        modeladmin.message_user(request, error, level=messages.ERROR)


# ======================================================
# ORDER ADMIN
# ======================================================


class OrderItemInline(admin.TabularInline):
    model = OrderItem
    extra = 0
    can_delete = False
    readonly_fields = ("product", "quantity", "size", "price_at_time")


@admin.register(Order)
class OrderAdmin(admin.ModelAdmin):
    list_display = (
        "order_number",
        "customer",
        "status",
        "total_amount",
        "payment_amount",
        "created_at",
    )
    readonly_fields = (
        "order_number",
        "customer",
        "status",
        "total_amount",
        "payment",
        "shipping_address",
        "created_at",
        "updated_at",
    )
    search_fields = ("order_number", "customer__email", "payment__external_reference")
    list_filter = ("status", "shipping_method", "created_at")
    list_select_related = ("customer", "payment")
    inlines = [OrderItemInline]
    actions = [
        _bulk_status_action(Order.STATUS_CONFIRMED),
        _bulk_status_action(Order.STATUS_PROCESSING),
        _bulk_status_action(Order.STATUS_SHIPPED),
        _bulk_status_action(Order.STATUS_DELIVERED),
        _bulk_status_action(Order.STATUS_CANCELLED),
        delete_cancelled_orders,
    ]

    def get_actions(self, request):
        actions = super().get_actions(request)
        actions.pop("delete_selected", None)
        return actions

    def has_delete_permission(self, request, obj=None):
        # The change-form delete button is offered for CANCELLED orders only.
        if obj is not None and obj.status != Order.STATUS_CANCELLED:
            return False
        return super().has_delete_permission(request, obj)

    def delete_model(self, request, obj):
        delete_order(order_id=obj.id)

    @admin.display(description="Payment amount")
    def payment_amount(self, obj):
        return obj.payment.amount


# ======================================================
# PAYMENT ADMIN
# ======================================================


@admin.register(Payment)
class PaymentAdmin(admin.ModelAdmin):
    list_display = ("external_reference", "method", "status", "amount", "customer", "created_at")
    readonly_fields = (
        "external_reference",
        "method",
        "status",
        "amount",
        "customer",
        "checkout_url",
        "order_draft",
        "provider_payload",
        "completed_at",
        "created_at",
    )
    search_fields = ("external_reference", "customer__email")
    list_filter = ("method", "status", "created_at")

    def has_delete_permission(self, request, obj=None):
        # Orders hold PROTECT references; payments are never removed here.
        return False
