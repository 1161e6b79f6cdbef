"""
URL configuration for the school fees backend.

URL Structure:
    /                              - ReDoc API documentation
    /admin/                        - Django admin interface
    /health/                       - Health check endpoint (load balancers, Docker)
    /schema/                       - OpenAPI schema (YAML)
    /api/v1/auth/                  - Authentication endpoints
        token/                     - Obtain JWT pair (email + password)
        token/refresh/             - Refresh access token
        me/                        - Current user with tenant and role
    /api/v1/fees/                  - Fee endpoints
        invoices/                  - Invoice list/create
        invoices/{id}/             - Invoice detail
        invoices/{id}/cancel/      - Cancel an unpaid invoice
        invoices/{id}/pay/         - Start a gateway payment
        payments/                  - Payment attempt history
        payments/stuck/            - Stuck payment report (admin)
        payments/{id}/             - Payment attempt detail
        payments/{id}/status/      - Check gateway status for an attempt (POST)
        payments/{id}/audit-log/   - Status history of an attempt
        disputes/                  - Dispute list/submit
        disputes/{id}/             - Dispute detail
        disputes/{id}/review/      - Start reviewing a dispute (admin)
        disputes/{id}/resolve/     - Approve/reject a dispute (admin)
        receipts/                  - Receipt list
        receipts/{id}/             - Receipt detail
        reports/collection/        - Daily collection report (admin)
        webhooks/gateway/          - Payment gateway callback (POST)

WebSocket routes live in config/asgi.py (see fees/routing.py).
"""

from django.contrib import admin
from django.urls import include, path
from drf_spectacular.views import SpectacularAPIView, SpectacularRedocView

from core.views import health_check

# =============================================================================
# API v1 Routes
# =============================================================================
api_v1_patterns = [
    path("auth/", include("authentication.urls")),
    path("fees/", include("fees.urls")),
]

urlpatterns = [
    # Documentation
    path("", SpectacularRedocView.as_view(url_name="schema"), name="redoc"),
    path("schema/", SpectacularAPIView.as_view(), name="schema"),
    # Admin
    path("admin/", admin.site.urls),
    # Health check (Docker, Kubernetes, load balancers)
    path("health/", health_check, name="health_check"),
    # API v1
    path("api/v1/", include(api_v1_patterns)),
]

# =============================================================================
# Admin Site Customization
# =============================================================================
admin.site.site_header = "School Fees Admin"
admin.site.site_title = "School Fees"
admin.site.index_title = "Fee collection & reconciliation"
