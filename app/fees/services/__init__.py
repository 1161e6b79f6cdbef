"""
Fee services.

- InvoiceService: Invoice generation and cancellation
- PaymentService: Payment initiation and gateway status handling
- DisputeService: Dispute submission and admin resolution
- ReconciliationService: Periodic reconciliation against the gateway
- StuckPaymentDetector: Read-only stuck payment query
- CollectionReportService: Daily collection totals
"""

from fees.services.dispute_service import DisputeResolution, DisputeService
from fees.services.invoice_service import InvoiceService
from fees.services.payment_service import (
    GatewayUpdate,
    GatewayUpdateAction,
    PaymentInitiation,
    PaymentService,
)
from fees.services.reconciliation_service import (
    ReconciliationRunResult,
    ReconciliationService,
)
from fees.services.report_service import CollectionReport, CollectionReportService
from fees.services.stuck_payments import StuckPaymentDetector

__all__ = [
    "CollectionReport",
    "CollectionReportService",
    "DisputeResolution",
    "DisputeService",
    "GatewayUpdate",
    "GatewayUpdateAction",
    "InvoiceService",
    "PaymentInitiation",
    "PaymentService",
    "ReconciliationRunResult",
    "ReconciliationService",
    "StuckPaymentDetector",
]
