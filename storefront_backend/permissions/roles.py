# permissions/roles.py

from __future__ import annotations

from typing import Optional

from rest_framework.permissions import BasePermission


# =========================================================
# ROLE CONSTANTS
# =========================================================
ROLE_CUSTOMER = "customer"
ROLE_ADMIN = "admin"

ALL_ROLES = {
    ROLE_CUSTOMER,
    ROLE_ADMIN,
}


# =========================================================
# CAPABILITIES (THE REAL PERMISSION LANGUAGE)
# =========================================================
# Views should protect capabilities, not raw roles.
CAP_CART_MANAGE = "cart.manage"
CAP_CHECKOUT = "orders.checkout"
CAP_ORDERS_VIEW_OWN = "orders.view_own"
CAP_ORDERS_MANAGE = "orders.manage"          # status changes, tracking, delete
CAP_ANALYTICS_VIEW = "analytics.view"

ALL_CAPABILITIES = {
    CAP_CART_MANAGE,
    CAP_CHECKOUT,
    CAP_ORDERS_VIEW_OWN,
    CAP_ORDERS_MANAGE,
    CAP_ANALYTICS_VIEW,
}


# =========================================================
# ROLE → CAPABILITY MAP
# =========================================================
ROLE_CAPABILITIES: dict[str, set[str]] = {
    ROLE_CUSTOMER: {
        CAP_CART_MANAGE,
        CAP_CHECKOUT,
        CAP_ORDERS_VIEW_OWN,
    },
    ROLE_ADMIN: set(ALL_CAPABILITIES),
}


# =========================================================
# Helpers
# =========================================================
def get_user_role(user) -> Optional[str]:
    return getattr(user, "role", None)


def capabilities_for(user) -> set[str]:
    if getattr(user, "is_superuser", False):
        return set(ALL_CAPABILITIES)
    return set(ROLE_CAPABILITIES.get(get_user_role(user), set()))


def user_has_capability(user, capability: str) -> bool:
    if not user or not getattr(user, "is_authenticated", False):
        return False
    return capability in capabilities_for(user)


# =========================================================
# Base Role Permission (Internal Use)
# =========================================================
class BaseRolePermission(BasePermission):
    """
    Subclasses must define:
    - allowed_roles (set)
    """

    allowed_roles: set[str] = set()

    def has_permission(self, request, view):
        user = request.user

        if not user or not user.is_authenticated:
            return False

        user_role = get_user_role(user)
        if not user_role:
            return False

        return user_role in self.allowed_roles


# =========================================================
# Capability Permission
# =========================================================
class HasCapability(BasePermission):
    """
    Require a specific capability.

    Usage:
        permission_classes = [IsAuthenticated, HasCapability]
        required_capability = CAP_ORDERS_MANAGE
    """

    def has_permission(self, request, view):
        required = getattr(view, "required_capability", None)
        if not required:
            # Deny-by-default so a missing attribute never opens an endpoint.
            return False

        return user_has_capability(request.user, required)


# =========================================================
# Role Permissions
# =========================================================
class IsAdmin(BaseRolePermission):
    allowed_roles = {ROLE_ADMIN}


class IsCustomer(BaseRolePermission):
    allowed_roles = {ROLE_CUSTOMER}
