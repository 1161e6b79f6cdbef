"""
Tests for the gateway callback endpoint.

Callbacks are signed with the same secret as the injected mock gateway.
"""

import json
from decimal import Decimal

import pytest
from django.urls import reverse

from fees.gateways import GatewayPaymentStatus
from fees.gateways.mock import MockPaymentGateway
from fees.models import FeeInvoice, PaymentAttempt, Receipt
from fees.state_machines import InvoiceStatus, PaymentAttemptStatus, TriggerSource
from fees.tests.conftest import WEBHOOK_SECRET

URL = reverse("fees:gateway-webhook")


def _post(client, payload, signature=None):
    body = payload if isinstance(payload, bytes) else json.dumps(payload).encode()
    if signature is None:
        signature = MockPaymentGateway(webhook_secret=WEBHOOK_SECRET).sign(body)
    return client.post(
        URL,
        data=body,
        content_type="application/json",
        HTTP_X_GATEWAY_SIGNATURE=signature,
    )


@pytest.mark.django_db
class TestGatewayWebhook:
    def test_success_callback_credits_invoice(self, client, gateway, processing_attempt):
        response = _post(
            client,
            {
                "gateway_ref_id": processing_attempt.gateway_ref_id,
                "status": GatewayPaymentStatus.SUCCESS,
                "amount": "5000.00",
            },
        )

        assert response.status_code == 200
        data = response.json()
        assert data["action"] == "credited"
        assert data["status"] == PaymentAttemptStatus.SUCCESS
        assert data["attempt_id"] == str(processing_attempt.id)

        invoice = FeeInvoice.objects.get(pk=processing_attempt.invoice_id)
        assert invoice.status == InvoiceStatus.PAID
        assert Receipt.objects.filter(payment_attempt=processing_attempt).count() == 1
        assert PaymentAttempt.objects.get(pk=processing_attempt.pk).audit_logs.filter(
            trigger_source=TriggerSource.GATEWAY_CALLBACK
        ).exists()

    def test_replayed_callback_changes_nothing(self, client, gateway, processing_attempt):
        payload = {
            "gateway_ref_id": processing_attempt.gateway_ref_id,
            "status": GatewayPaymentStatus.SUCCESS,
        }
        _post(client, payload)

        response = _post(client, payload)

        assert response.status_code == 200
        assert response.json()["action"] == "unchanged"
        assert Receipt.objects.count() == 1
        invoice = FeeInvoice.objects.get(pk=processing_attempt.invoice_id)
        assert invoice.paid_amount == Decimal("5000.00")

    def test_failure_callback_fails_attempt(self, client, gateway, processing_attempt):
        response = _post(
            client,
            {
                "gateway_ref_id": processing_attempt.gateway_ref_id,
                "status": GatewayPaymentStatus.FAILED,
            },
        )

        assert response.json()["action"] == "failed"
        attempt = PaymentAttempt.objects.get(pk=processing_attempt.pk)
        assert attempt.status == PaymentAttemptStatus.FAILED

    def test_mismatched_amount_escalates(self, client, gateway, processing_attempt):
        response = _post(
            client,
            {
                "gateway_ref_id": processing_attempt.gateway_ref_id,
                "status": GatewayPaymentStatus.SUCCESS,
                "amount": "4000.00",
            },
        )

        assert response.json()["action"] == "escalated"
        assert Receipt.objects.count() == 0

    def test_bad_signature_rejected(self, client, gateway, processing_attempt):
        response = _post(
            client,
            {
                "gateway_ref_id": processing_attempt.gateway_ref_id,
                "status": GatewayPaymentStatus.SUCCESS,
            },
            signature="0" * 64,
        )

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_WEBHOOK_SIGNATURE"
        attempt = PaymentAttempt.objects.get(pk=processing_attempt.pk)
        assert attempt.status == PaymentAttemptStatus.PROCESSING

    def test_missing_signature_rejected(self, client, gateway):
        response = client.post(URL, data=b"{}", content_type="application/json")

        assert response.status_code == 400

    def test_invalid_json_rejected(self, client, gateway):
        response = _post(client, b"not json")

        assert response.status_code == 400
        assert response.json()["error_code"] == "INVALID_WEBHOOK_PAYLOAD"

    def test_unknown_status_rejected(self, client, gateway, processing_attempt):
        response = _post(
            client,
            {"gateway_ref_id": processing_attempt.gateway_ref_id, "status": "refunded"},
        )

        assert response.status_code == 400

    def test_unknown_reference_acknowledged(self, client, gateway):
        response = _post(
            client,
            {"gateway_ref_id": "mock_txn_neverissued", "status": GatewayPaymentStatus.SUCCESS},
        )

        assert response.status_code == 200
        assert response.json() == {"received": True, "action": "ignored"}

    def test_get_not_allowed(self, client, gateway):
        assert client.get(URL).status_code == 405
