# analytics/apps.py

"""
ANALYTICS APP CONFIG

Read-only revenue / order / user rollups for the admin dashboard.
No models: everything is derived from orders, users and products.
"""

from django.apps import AppConfig


class AnalyticsConfig(AppConfig):
    default_auto_field = "django.db.models.BigAutoField"
    name = "analytics"
    verbose_name = "Analytics"
