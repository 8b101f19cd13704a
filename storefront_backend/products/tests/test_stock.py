# products/tests/test_stock.py

from django.test import SimpleTestCase, TestCase

from products.models import Product
from products.services.inventory import (
    InsufficientStockError,
    InventoryError,
    ProductUnavailableError,
    deduct_stock,
    restore_stock,
    validate_stock,
)
from products.services.pricing import effective_price, line_total


class ProductStockTests(TestCase):
    """
    Stock-level tests.

    GUARANTEES:
    - Requests for one product are validated as a sum
    - Inactive products are never sold
    - Deduct / restore are exact inverses
    """

    def setUp(self):
        self.product = Product.objects.create(
            name="Linen Shirt",
            sku="LIN-001",
            unit_price=100,
            stock=5,
        )

    def test_validate_sums_lines_of_same_product(self):
        with self.assertRaises(InsufficientStockError):
            validate_stock([(self.product.id, 3), (self.product.id, 3)])

    def test_validate_returns_products(self):
        products = validate_stock([(self.product.id, 5)])
        self.assertEqual(products[str(self.product.id)], self.product)

    def test_inactive_product_is_unavailable(self):
        self.product.is_active = False
        self.product.save()

        with self.assertRaises(ProductUnavailableError):
            validate_stock([(self.product.id, 1)])

    def test_non_positive_quantity_rejected(self):
        with self.assertRaises(InventoryError):
            validate_stock([(self.product.id, 0)])

    def test_deduct_then_restore(self):
        deduct_stock([(self.product.id, 2)])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 3)

        restore_stock([(self.product.id, 2)])
        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)

    def test_deduct_never_goes_negative(self):
        with self.assertRaises(InsufficientStockError):
            deduct_stock([(self.product.id, 6)])

        self.product.refresh_from_db()
        self.assertEqual(self.product.stock, 5)


class PricingTests(SimpleTestCase):
    def test_unit_price_wins(self):
        self.assertEqual(effective_price(Product(unit_price=120, reference_price=150)), 120)

    def test_falls_back_to_reference_price(self):
        self.assertEqual(effective_price(Product(unit_price=None, reference_price=150)), 150)

    def test_no_price_is_zero(self):
        self.assertEqual(effective_price(Product()), 0)

    def test_line_total(self):
        self.assertEqual(line_total(Product(unit_price=30), 3), 90)
