"""
URL configuration for the fees API.

URL Structure:
    Invoices:
        /invoices/                     GET, POST
        /invoices/{id}/                GET
        /invoices/{id}/cancel/         POST
        /invoices/{id}/pay/            POST

    Payments:
        /payments/                     GET
        /payments/stuck/               GET
        /payments/{id}/                GET
        /payments/{id}/status/         POST
        /payments/{id}/audit-log/      GET

    Disputes:
        /disputes/                     GET, POST
        /disputes/{id}/                GET
        /disputes/{id}/resolve/        POST

    Receipts:
        /receipts/                     GET
        /receipts/{id}/                GET

    Reports:
        /reports/collection/           GET

    Webhooks:
        /webhooks/gateway/             POST (signed, unauthenticated)

All URLs are prefixed with /api/v1/fees/ in the main URL configuration.
"""

from django.urls import include, path
from rest_framework.routers import DefaultRouter

from fees.views import (
    CollectionReportView,
    FeeInvoiceViewSet,
    PaymentAttemptViewSet,
    PaymentDisputeViewSet,
    ReceiptViewSet,
)
from fees.webhooks import gateway_webhook

router = DefaultRouter()
router.register(r"invoices", FeeInvoiceViewSet, basename="invoice")
router.register(r"payments", PaymentAttemptViewSet, basename="payment")
router.register(r"disputes", PaymentDisputeViewSet, basename="dispute")
router.register(r"receipts", ReceiptViewSet, basename="receipt")

app_name = "fees"

urlpatterns = [
    path("", include(router.urls)),
    path(
        "reports/collection/",
        CollectionReportView.as_view(),
        name="collection-report",
    ),
    path("webhooks/gateway/", gateway_webhook, name="gateway-webhook"),
]
