# analytics/urls.py

from django.urls import path

from analytics.views.api import AnalyticsView

app_name = "analytics"

urlpatterns = [
    path("", AnalyticsView.as_view(), name="dashboard"),
]
