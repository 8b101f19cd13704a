# products/admin.py
"""
PATH: products/admin.py

Product snapshots are maintained by the catalog; the admin here is for
operators to inspect prices/stock and fix data by hand.
"""

from __future__ import annotations

from django.contrib import admin

from products.models import Product


@admin.register(Product)
class ProductAdmin(admin.ModelAdmin):
    list_display = (
        "name",
        "sku",
        "unit_price",
        "reference_price",
        "effective_price",
        "stock",
        "is_active",
    )
    list_filter = ("is_active",)
    search_fields = ("name", "sku")
    readonly_fields = ("created_at", "updated_at")

    @admin.display(description="Effective price")
    def effective_price(self, obj):
        return obj.effective_price
