# backend/settings/test.py
"""
PATH: backend/settings/test.py

TEST SETTINGS (pytest-django entrypoint)

- In-memory SQLite
- Fake payment gateway (no network)
- Analytics + bulk fan-out run inline (tests share one DB connection)
- Throttle rates raised (shared cache across tests)
"""

from __future__ import annotations

from .base import *  # noqa: F403
from .base import PAYMENTS, REST_FRAMEWORK

DEBUG = False
TESTING = True

DATABASES = {
    "default": {
        "ENGINE": "django.db.backends.sqlite3",
        "NAME": ":memory:",
    }
}

PASSWORD_HASHERS = ["django.contrib.auth.hashers.MD5PasswordHasher"]

PAYMENTS["GATEWAY"]["BACKEND"] = "orders.services.gateway.FakeGateway"

ANALYTICS_PARALLEL = False
ORDERS_BULK_PARALLEL = False

REST_FRAMEWORK = {
    **REST_FRAMEWORK,
    "DEFAULT_THROTTLE_RATES": {
        scope: "100000/min" for scope in REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]
    },
}

SHIPPING_COSTS = {
    "standard": 8,
    "express": 18,
    "preorder": 0,
}
