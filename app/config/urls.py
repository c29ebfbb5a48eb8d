"""
URL configuration for the Django application.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/health/                - Health check (unauthenticated)
    /api/v1/auth/                  - JWT token endpoints
        token/                     - Obtain access/refresh pair
        token/refresh/             - Refresh access token
    /api/v1/conversations/         - Messaging endpoints (see chat/urls.py)

WebSocket routes live in chat/routing.py and are mounted in config/asgi.py.
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("health/", health_check, name="health_check"),
    path("auth/", include("authentication.urls")),
    path("", include("chat.urls")),
]

urlpatterns = [
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    path("admin/", admin.site.urls),
    path("api/v1/", include(api_v1_patterns)),
]

admin.site.site_header = "Alumni Messaging Admin"
admin.site.site_title = "Alumni Messaging"
admin.site.index_title = "Messaging administration"
