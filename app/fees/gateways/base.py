"""
Payment gateway interface.

All gateway calls go through a PaymentGateway implementation so the
payment and reconciliation services never touch a provider SDK directly.
The active implementation is chosen by settings.PAYMENT_GATEWAY_CLASS.

Usage:
    from fees.gateways import CreateSessionParams, get_gateway

    gateway = get_gateway()
    session = gateway.create_session(
        CreateSessionParams(
            amount=Decimal("5000.00"),
            currency="INR",
            idempotency_key=attempt.idempotency_key,
            reference=invoice.invoice_number,
        )
    )
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from django.conf import settings
from django.utils.module_loading import import_string

# =============================================================================
# Data Types
# =============================================================================


class GatewayPaymentStatus:
    """Normalized transaction statuses reported by any gateway."""

    SUCCESS = "success"
    FAILED = "failed"
    PENDING = "pending"
    PROCESSING = "processing"

    ALL = (SUCCESS, FAILED, PENDING, PROCESSING)


@dataclass
class CreateSessionParams:
    """
    Parameters for starting a hosted checkout session.

    Attributes:
        amount: Amount to collect
        currency: ISO 4217 currency code
        idempotency_key: Our attempt key, passed through to the provider
        reference: Human reference shown on the checkout page
        metadata: Extra key-value pairs echoed back in callbacks
    """

    amount: Decimal
    currency: str
    idempotency_key: str
    reference: str = ""
    metadata: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if self.amount <= 0:
            raise ValueError("amount must be positive")
        if not self.idempotency_key:
            raise ValueError("idempotency_key is required")


@dataclass
class PaymentSession:
    """
    A checkout session accepted by the gateway.

    Attributes:
        gateway_ref_id: Provider transaction reference
        checkout_url: URL the student completes the payment at
        raw_response: Provider payload (stored on the attempt)
    """

    gateway_ref_id: str
    checkout_url: str
    raw_response: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayStatusResult:
    """
    Transaction status as reported by the gateway.

    Used both for status polling and for parsed callbacks.
    """

    gateway_ref_id: str
    status: str
    amount: Decimal | None = None
    raw_response: dict[str, Any] = field(default_factory=dict)

    @property
    def is_terminal(self) -> bool:
        return self.status in (GatewayPaymentStatus.SUCCESS, GatewayPaymentStatus.FAILED)


# =============================================================================
# Gateway Interface
# =============================================================================


class PaymentGateway(ABC):
    """
    Interface every payment gateway implementation provides.

    Implementations raise fees.exceptions.GatewayError when the provider
    cannot be reached or rejects a call, and WebhookSignatureError when a
    callback fails verification.
    """

    name: str = "gateway"

    @abstractmethod
    def create_session(self, params: CreateSessionParams) -> PaymentSession:
        """Start a checkout session for an attempt."""

    @abstractmethod
    def fetch_status(self, gateway_ref_id: str) -> GatewayStatusResult:
        """Ask the gateway for the current status of a transaction."""

    @abstractmethod
    def parse_webhook(self, body: bytes, signature: str) -> GatewayStatusResult:
        """Verify and decode a callback sent by the gateway."""


def get_gateway() -> PaymentGateway:
    """Instantiate the gateway configured in settings.PAYMENT_GATEWAY_CLASS."""
    gateway_class = import_string(settings.PAYMENT_GATEWAY_CLASS)
    return gateway_class()
