"""
Deterministic mock gateway.

Stands in for a bank/UPI provider in development and tests. Every
transaction reports the same configured status, so flows are repeatable.
Callbacks are signed with HMAC-SHA256 over the raw body using
settings.PAYMENT_GATEWAY_WEBHOOK_SECRET, the same scheme a real provider
integration is expected to follow.
"""

from __future__ import annotations

import hashlib
import hmac
import json
import logging
import uuid
from decimal import Decimal, InvalidOperation

from django.conf import settings

from fees.exceptions import FeesValidationError, WebhookSignatureError
from fees.gateways.base import (
    CreateSessionParams,
    GatewayPaymentStatus,
    GatewayStatusResult,
    PaymentGateway,
    PaymentSession,
)

logger = logging.getLogger(__name__)


class MockPaymentGateway(PaymentGateway):
    """
    Mock gateway with a fixed outcome.

    Args:
        force_status: Status reported by fetch_status
            (default: settings.PAYMENT_GATEWAY_MOCK_STATUS)
        webhook_secret: Callback signing secret
            (default: settings.PAYMENT_GATEWAY_WEBHOOK_SECRET)
    """

    name = "mock"

    def __init__(
        self,
        force_status: str | None = None,
        webhook_secret: str | None = None,
    ) -> None:
        self.force_status = force_status or settings.PAYMENT_GATEWAY_MOCK_STATUS
        self.webhook_secret = webhook_secret or settings.PAYMENT_GATEWAY_WEBHOOK_SECRET

    def create_session(self, params: CreateSessionParams) -> PaymentSession:
        gateway_ref_id = f"mock_txn_{uuid.uuid4().hex[:16]}"
        checkout_url = f"{settings.PAYMENT_GATEWAY_CHECKOUT_URL}/{gateway_ref_id}"
        logger.info(
            "Mock checkout session created",
            extra={
                "gateway_ref_id": gateway_ref_id,
                "idempotency_key": params.idempotency_key,
                "amount": str(params.amount),
            },
        )
        return PaymentSession(
            gateway_ref_id=gateway_ref_id,
            checkout_url=checkout_url,
            raw_response={
                "id": gateway_ref_id,
                "amount": str(params.amount),
                "currency": params.currency,
                "reference": params.reference,
                "status": GatewayPaymentStatus.PROCESSING,
            },
        )

    def fetch_status(self, gateway_ref_id: str) -> GatewayStatusResult:
        return GatewayStatusResult(
            gateway_ref_id=gateway_ref_id,
            status=self.force_status,
            raw_response={"id": gateway_ref_id, "status": self.force_status},
        )

    def sign(self, body: bytes) -> str:
        """Hex HMAC-SHA256 of a callback body."""
        return hmac.new(
            self.webhook_secret.encode(),
            body,
            hashlib.sha256,
        ).hexdigest()

    def parse_webhook(self, body: bytes, signature: str) -> GatewayStatusResult:
        """
        Verify and decode a callback.

        Expected body:
            {"gateway_ref_id": "mock_txn_...", "status": "success", "amount": "5000.00"}

        Raises:
            WebhookSignatureError: Missing or wrong signature
            FeesValidationError: Body is not a valid callback payload
        """
        if not signature or not hmac.compare_digest(self.sign(body), signature):
            raise WebhookSignatureError("Invalid gateway callback signature")

        try:
            payload = json.loads(body)
        except (json.JSONDecodeError, UnicodeDecodeError) as e:
            raise FeesValidationError(
                "Callback body is not valid JSON",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            ) from e

        if not isinstance(payload, dict):
            raise FeesValidationError(
                "Callback body must be a JSON object",
                error_code="INVALID_WEBHOOK_PAYLOAD",
            )

        gateway_ref_id = payload.get("gateway_ref_id")
        status = payload.get("status")
        if not gateway_ref_id or status not in GatewayPaymentStatus.ALL:
            raise FeesValidationError(
                "Callback is missing gateway_ref_id or has an unknown status",
                error_code="INVALID_WEBHOOK_PAYLOAD",
                details={"status": status},
            )

        amount = None
        if payload.get("amount") is not None:
            try:
                amount = Decimal(str(payload["amount"]))
            except InvalidOperation as e:
                raise FeesValidationError(
                    "Callback amount is not a number",
                    error_code="INVALID_WEBHOOK_PAYLOAD",
                ) from e

        return GatewayStatusResult(
            gateway_ref_id=gateway_ref_id,
            status=status,
            amount=amount,
            raw_response=payload,
        )
