"""
Payment gateway integrations.

Usage:
    from fees.gateways import get_gateway

    gateway = get_gateway()
    result = gateway.fetch_status("mock_txn_1a2b3c")
"""

from fees.gateways.base import (
    CreateSessionParams,
    GatewayPaymentStatus,
    GatewayStatusResult,
    PaymentGateway,
    PaymentSession,
    get_gateway,
)

__all__ = [
    "CreateSessionParams",
    "GatewayPaymentStatus",
    "GatewayStatusResult",
    "PaymentGateway",
    "PaymentSession",
    "get_gateway",
]
