"""
Fee domain models.

- FeeInvoice: What a student owes for a billing period
- PaymentAttempt: One try at paying an invoice through the gateway
- PaymentDispute: A student's claim that a payment was made
- PaymentAuditLog: Append-only history of attempt status changes
- Receipt: Proof of payment for a successful attempt
- ReconciliationRun: History of reconciliation job executions
- DocumentSequence: Per-school counters for invoice and receipt numbers
"""

from fees.models.audit import PaymentAuditLog, Receipt
from fees.models.dispute import PaymentDispute
from fees.models.invoice import FeeInvoice
from fees.models.payment_attempt import PaymentAttempt
from fees.models.reconciliation import ReconciliationRun
from fees.models.sequence import INVOICE_PREFIX, RECEIPT_PREFIX, DocumentSequence

__all__ = [
    "DocumentSequence",
    "FeeInvoice",
    "INVOICE_PREFIX",
    "PaymentAttempt",
    "PaymentAuditLog",
    "PaymentDispute",
    "RECEIPT_PREFIX",
    "Receipt",
    "ReconciliationRun",
]
