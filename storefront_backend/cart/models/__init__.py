"""
PATH: cart/models/__init__.py
"""

from .cart_item import CartItem

__all__ = [
    "CartItem",
]
