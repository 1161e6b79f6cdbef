"""
State machine definitions for fee models.

Usage:
    from fees.state_machines import DisputeStatus, PaymentAttemptStatus
"""

from fees.state_machines.states import (
    ACTIVE_ATTEMPT_STATUSES,
    ACTIVE_DISPUTE_STATUSES,
    TERMINAL_ATTEMPT_STATUSES,
    DisputeAction,
    DisputeStatus,
    InvoiceStatus,
    PaymentAttemptStatus,
    ReconciliationRunStatus,
    TriggerSource,
)

__all__ = [
    "ACTIVE_ATTEMPT_STATUSES",
    "ACTIVE_DISPUTE_STATUSES",
    "DisputeAction",
    "DisputeStatus",
    "InvoiceStatus",
    "PaymentAttemptStatus",
    "ReconciliationRunStatus",
    "TERMINAL_ATTEMPT_STATUSES",
    "TriggerSource",
]
