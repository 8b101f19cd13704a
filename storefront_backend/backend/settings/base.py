"""
PATH: backend/settings/base.py

BASE SETTINGS (shared by dev + prod + test)

Covers:
- Env loading (.env via django-environ)
- DRF + SimpleJWT + throttling
- Payment gateway selection
- Shipping cost table (whole currency units)
- Analytics / bulk fan-out concurrency switches
- Sentry (optional)
"""

from __future__ import annotations

import sys
from datetime import timedelta
from pathlib import Path

import environ
from corsheaders.defaults import default_headers, default_methods

# -----------------------------------------
# BASE DIRECTORY
# -----------------------------------------
BASE_DIR = Path(__file__).resolve().parent.parent.parent

# -----------------------------------------
# TEST MODE DETECTION
# -----------------------------------------
TESTING = "test" in sys.argv

# -----------------------------------------
# ENV (django-environ)
# -----------------------------------------
env = environ.Env(
    DEBUG=(bool, True),
    SECRET_KEY=(str, ""),
    TIME_ZONE=(str, "UTC"),
    ALLOWED_HOSTS=(list, ["localhost", "127.0.0.1", "testserver"]),
    CORS_ALLOWED_ORIGINS=(list, ["http://localhost:3000"]),
    CSRF_TRUSTED_ORIGINS=(list, ["http://localhost:3000"]),
    DATABASE_URL=(str, f"sqlite:///{BASE_DIR / 'db.sqlite3'}"),
    # Throttling
    THROTTLE_ANON_RATE=(str, "60/min"),
    THROTTLE_USER_RATE=(str, "600/min"),
    THROTTLE_CHECKOUT_RATE=(str, "20/min"),
    THROTTLE_WEBHOOK_RATE=(str, "600/min"),
    FRONTEND_BASE_URL=(str, "http://localhost:3000"),
    # Payment gateway (PayOS)
    PAYMENT_GATEWAY_BACKEND=(str, "orders.services.gateway.PayOSGateway"),
    PAYOS_CLIENT_ID=(str, ""),
    PAYOS_API_KEY=(str, ""),
    PAYOS_CHECKSUM_KEY=(str, ""),
    PAYMENT_RETURN_URL=(str, ""),
    PAYMENT_CANCEL_URL=(str, ""),
    PAYMENT_GATEWAY_TIMEOUT=(int, 25),
    # Shipping (whole currency units)
    SHIPPING_COST_STANDARD=(int, 8),
    SHIPPING_COST_EXPRESS=(int, 18),
    SHIPPING_COST_PREORDER=(int, 0),
    GUEST_CART_TTL_DAYS=(int, 30),
    # Thread fan-out (off under the test runner: one DB connection per test)
    ANALYTICS_PARALLEL=(bool, not TESTING),
    ANALYTICS_MAX_WORKERS=(int, 8),
    ORDERS_BULK_PARALLEL=(bool, not TESTING),
    ORDERS_BULK_MAX_WORKERS=(int, 8),
    LOG_LEVEL=(str, "INFO"),
    # Sentry (optional; enable by setting SENTRY_DSN)
    SENTRY_DSN=(str, ""),
    SENTRY_ENVIRONMENT=(str, "development"),
    SENTRY_TRACES_SAMPLE_RATE=(float, 0.0),
    SENTRY_SEND_PII=(bool, False),
)

# -----------------------------------------
# LOAD .env
# -----------------------------------------
env_file_1 = BASE_DIR / ".env"
env_file_2 = BASE_DIR.parent / ".env"

if env_file_1.exists():
    env.read_env(str(env_file_1))
elif env_file_2.exists():
    env.read_env(str(env_file_2))

# -----------------------------------------
# CORE SECURITY
# -----------------------------------------
SECRET_KEY = (env("SECRET_KEY") or "dev-insecure-change-me").strip()
DEBUG = env.bool("DEBUG")
ALLOWED_HOSTS = env.list("ALLOWED_HOSTS")

# -----------------------------------------
# I18N / TZ
# -----------------------------------------
LANGUAGE_CODE = "en-us"
TIME_ZONE = (env("TIME_ZONE") or "UTC").strip()
USE_I18N = True
USE_TZ = True

# -----------------------------------------
# AUTH USER MODEL (custom)
# -----------------------------------------
AUTH_USER_MODEL = "users.User"

# -----------------------------------------
# INSTALLED APPS
# -----------------------------------------
INSTALLED_APPS = [
    "corsheaders",
    "django.contrib.admin",
    "django.contrib.auth",
    "django.contrib.contenttypes",
    "django.contrib.sessions",
    "django.contrib.messages",
    "django.contrib.staticfiles",
    "rest_framework",
    "rest_framework_simplejwt",
    "drf_spectacular",
    "django_filters",
    "users.apps.UsersConfig",
    "products.apps.ProductsConfig",
    "cart.apps.CartConfig",
    "orders.apps.OrdersConfig",
    "analytics.apps.AnalyticsConfig",
]

# -----------------------------------------
# MIDDLEWARE
# -----------------------------------------
MIDDLEWARE = [
    "corsheaders.middleware.CorsMiddleware",
    "django.middleware.security.SecurityMiddleware",
    "django.contrib.sessions.middleware.SessionMiddleware",
    "django.middleware.common.CommonMiddleware",
    "django.middleware.csrf.CsrfViewMiddleware",
    "django.contrib.auth.middleware.AuthenticationMiddleware",
    "django.contrib.messages.middleware.MessageMiddleware",
    "django.middleware.clickjacking.XFrameOptionsMiddleware",
]

ROOT_URLCONF = "backend.urls"
WSGI_APPLICATION = "backend.wsgi.application"
APPEND_SLASH = True

# -----------------------------------------
# TEMPLATES (required for Django admin)
# -----------------------------------------
TEMPLATES = [
    {
        "BACKEND": "django.template.backends.django.DjangoTemplates",
        "DIRS": [],
        "APP_DIRS": True,
        "OPTIONS": {
            "context_processors": [
                "django.template.context_processors.debug",
                "django.template.context_processors.request",
                "django.contrib.auth.context_processors.auth",
                "django.contrib.messages.context_processors.messages",
            ],
        },
    }
]

# -----------------------------------------
# REST FRAMEWORK
# -----------------------------------------
REST_FRAMEWORK = {
    "DEFAULT_AUTHENTICATION_CLASSES": (
        "rest_framework_simplejwt.authentication.JWTAuthentication",
    ),
    "DEFAULT_PERMISSION_CLASSES": ("rest_framework.permissions.IsAuthenticated",),
    "DEFAULT_FILTER_BACKENDS": ("django_filters.rest_framework.DjangoFilterBackend",),
    "DEFAULT_PAGINATION_CLASS": "rest_framework.pagination.PageNumberPagination",
    "PAGE_SIZE": 20,
    "DEFAULT_SCHEMA_CLASS": "drf_spectacular.openapi.AutoSchema",
    "DEFAULT_THROTTLE_CLASSES": (
        "rest_framework.throttling.AnonRateThrottle",
        "rest_framework.throttling.UserRateThrottle",
    ),
    "DEFAULT_THROTTLE_RATES": {
        "anon": env("THROTTLE_ANON_RATE"),
        "user": env("THROTTLE_USER_RATE"),
        "checkout": env("THROTTLE_CHECKOUT_RATE"),
        "webhook": env("THROTTLE_WEBHOOK_RATE"),
    },
}

# The test runner shares one cache across tests; keep throttles out of the way.
if TESTING:
    REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"] = {
        scope: "100000/min" for scope in REST_FRAMEWORK["DEFAULT_THROTTLE_RATES"]
    }

# -----------------------------------------
# SIMPLE JWT
# -----------------------------------------
SIMPLE_JWT = {
    "ACCESS_TOKEN_LIFETIME": timedelta(minutes=30),
    "REFRESH_TOKEN_LIFETIME": timedelta(days=1),
    "ROTATE_REFRESH_TOKENS": True,
}

# -----------------------------------------
# DATABASE
# -----------------------------------------
DATABASES = {
    "default": env.db("DATABASE_URL"),
}

# -----------------------------------------
# FRONTEND BASE URL
# -----------------------------------------
FRONTEND_BASE_URL = (env("FRONTEND_BASE_URL") or "http://localhost:3000").strip()

# -----------------------------------------
# PAYMENTS
# -----------------------------------------
PAYMENTS = {
    "GATEWAY": {
        "BACKEND": (env("PAYMENT_GATEWAY_BACKEND") or "").strip(),
        "CLIENT_ID": (env("PAYOS_CLIENT_ID") or "").strip(),
        "API_KEY": (env("PAYOS_API_KEY") or "").strip(),
        "CHECKSUM_KEY": (env("PAYOS_CHECKSUM_KEY") or "").strip(),
        "RETURN_URL": (env("PAYMENT_RETURN_URL") or f"{FRONTEND_BASE_URL}/payment-success").strip(),
        "CANCEL_URL": (env("PAYMENT_CANCEL_URL") or f"{FRONTEND_BASE_URL}/payment-cancel").strip(),
        "TIMEOUT": env.int("PAYMENT_GATEWAY_TIMEOUT"),
    }
}

# -----------------------------------------
# SHIPPING (whole currency units)
# -----------------------------------------
SHIPPING_COSTS = {
    "standard": env.int("SHIPPING_COST_STANDARD"),
    "express": env.int("SHIPPING_COST_EXPRESS"),
    "preorder": env.int("SHIPPING_COST_PREORDER"),
}

# -----------------------------------------
# GUEST CART
# -----------------------------------------
GUEST_CART_TTL_DAYS = env.int("GUEST_CART_TTL_DAYS")

# -----------------------------------------
# CONCURRENCY
# -----------------------------------------
# Thread fan-out is off under the test runner (one DB connection per test).
ANALYTICS_PARALLEL = env.bool("ANALYTICS_PARALLEL")
ANALYTICS_MAX_WORKERS = env.int("ANALYTICS_MAX_WORKERS")
ORDERS_BULK_PARALLEL = env.bool("ORDERS_BULK_PARALLEL")
ORDERS_BULK_MAX_WORKERS = env.int("ORDERS_BULK_MAX_WORKERS")

# -----------------------------------------
# LOGGING
# -----------------------------------------
LOG_LEVEL = (env("LOG_LEVEL") or "INFO").strip().upper()

LOGGING = {
    "version": 1,
    "disable_existing_loggers": False,
    "formatters": {
        "simple": {
            "format": "%(asctime)s %(levelname)s %(name)s %(message)s",
        },
    },
    "handlers": {
        "console": {
            "class": "logging.StreamHandler",
            "formatter": "simple",
        },
    },
    "root": {
        "handlers": ["console"],
        "level": LOG_LEVEL,
    },
    "loggers": {
        "django": {"handlers": ["console"], "level": "WARNING", "propagate": False},
    },
}

# -----------------------------------------
# SENTRY (optional)
# -----------------------------------------
SENTRY_DSN = (env("SENTRY_DSN") or "").strip()
SENTRY_ENVIRONMENT = (env("SENTRY_ENVIRONMENT") or "development").strip()
SENTRY_TRACES_SAMPLE_RATE = env.float("SENTRY_TRACES_SAMPLE_RATE")
SENTRY_SEND_PII = env.bool("SENTRY_SEND_PII")

if SENTRY_DSN:
    import sentry_sdk
    from sentry_sdk.integrations.django import DjangoIntegration

    sentry_sdk.init(
        dsn=SENTRY_DSN,
        environment=SENTRY_ENVIRONMENT,
        integrations=[DjangoIntegration()],
        traces_sample_rate=SENTRY_TRACES_SAMPLE_RATE,
        send_default_pii=SENTRY_SEND_PII,
    )

# -----------------------------------------
# CORS / CSRF
# -----------------------------------------
CORS_ALLOWED_ORIGINS = env.list("CORS_ALLOWED_ORIGINS")
CORS_ALLOW_CREDENTIALS = True
CORS_ALLOW_METHODS = list(default_methods)
CORS_ALLOW_HEADERS = list(default_headers)

CSRF_TRUSTED_ORIGINS = env.list("CSRF_TRUSTED_ORIGINS")

# -----------------------------------------
# STATIC FILES
# -----------------------------------------
STATIC_URL = "static/"
DEFAULT_AUTO_FIELD = "django.db.models.BigAutoField"

# -----------------------------------------
# SWAGGER
# -----------------------------------------
SPECTACULAR_SETTINGS = {
    "TITLE": "Storefront Backend API",
    "DESCRIPTION": "Cart, checkout, order fulfillment and analytics API",
    "VERSION": "1.0.0",
    "SERVE_INCLUDE_SCHEMA": False,
}
