# orders/tests/helpers.py

from django.contrib.auth import get_user_model

from orders.models import Order, OrderItem, Payment
from products.models import Product

User = get_user_model()

ADDRESS = {
    "first_name": "Ana",
    "last_name": "Silva",
    "street": "12 Harbour Road",
    "city": "Porto",
}


def make_customer(email="customer@example.com"):
    return User.objects.create_user(email=email, password="pass", role="customer")


def make_admin(email="admin@example.com"):
    return User.objects.create_user(email=email, password="pass", role="admin")


def make_product(sku, *, price=100, stock=100, reference_price=None, name=None):
    return Product.objects.create(
        sku=sku,
        name=name or sku,
        unit_price=price,
        reference_price=reference_price,
        stock=stock,
    )


def make_order(customer, *, status=Order.STATUS_ORDERED, lines=(), payment=None, payment_amount=None):
    """
    lines: iterable of (product, quantity, price_at_time).
    """
    total = sum(qty * price for _, qty, price in lines)

    if payment is None:
        payment = Payment.objects.create(
            external_reference=f"COD-{Payment.objects.count() + 1:08d}",
            method=Payment.METHOD_COD,
            amount=total if payment_amount is None else payment_amount,
            customer=customer,
        )

    order = Order.objects.create(
        customer=customer,
        payment=payment,
        status=status,
        total_amount=total,
    )
    for product, qty, price in lines:
        OrderItem.objects.create(order=order, product=product, quantity=qty, price_at_time=price)
    return order
