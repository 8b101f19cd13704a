from django.contrib import admin

from cart.models import CartItem


@admin.register(CartItem)
class CartItemAdmin(admin.ModelAdmin):
    list_display = ("owner_key", "product", "size", "quantity", "updated_at")
    search_fields = ("owner_key", "product__name", "product__sku")
    list_select_related = ("product",)
    readonly_fields = ("created_at", "updated_at")
