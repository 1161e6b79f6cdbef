"""
Pytest fixtures for fee tests.

Fixtures provide invoices and payment attempts in the states the services
care about, plus a deterministic gateway injected into the services.

Usage:
    def test_reconcile(processing_attempt, gateway):
        gateway.force_status = GatewayPaymentStatus.SUCCESS
        ...
"""

from decimal import Decimal
from unittest.mock import MagicMock

import pytest

from fees.exceptions import GatewayError
from fees.gateways import GatewayPaymentStatus
from fees.gateways.mock import MockPaymentGateway
from fees.services import PaymentService, ReconciliationService
from fees.state_machines import PaymentAttemptStatus
from fees.tests.factories import FeeInvoiceFactory, PaymentAttemptFactory

WEBHOOK_SECRET = "test-webhook-secret"


# =============================================================================
# Gateway Fixtures
# =============================================================================


@pytest.fixture
def gateway():
    """
    Mock gateway injected into PaymentService and ReconciliationService.

    Reports success until the test changes force_status.
    """
    mock_gateway = MockPaymentGateway(
        force_status=GatewayPaymentStatus.SUCCESS,
        webhook_secret=WEBHOOK_SECRET,
    )
    PaymentService.set_gateway(mock_gateway)
    ReconciliationService.set_gateway(mock_gateway)
    yield mock_gateway
    PaymentService.set_gateway(None)
    ReconciliationService.set_gateway(None)


@pytest.fixture
def unavailable_gateway():
    """Gateway whose every call fails with GatewayError."""
    failing = MagicMock(spec=MockPaymentGateway)
    failing.name = "mock"
    failing.create_session.side_effect = GatewayError("Gateway timed out")
    failing.fetch_status.side_effect = GatewayError("Gateway timed out")
    PaymentService.set_gateway(failing)
    ReconciliationService.set_gateway(failing)
    yield failing
    PaymentService.set_gateway(None)
    ReconciliationService.set_gateway(None)


# =============================================================================
# Invoice Fixtures
# =============================================================================


@pytest.fixture
def invoice(student):
    """PENDING 5000.00 invoice of the default student."""
    return FeeInvoiceFactory(student=student, total_amount=Decimal("5000.00"))


# =============================================================================
# PaymentAttempt State Fixtures
# =============================================================================


@pytest.fixture
def initiated_attempt(invoice):
    return PaymentAttemptFactory(invoice=invoice)


@pytest.fixture
def processing_attempt(invoice):
    """Attempt the gateway accepted, with a gateway reference."""
    return PaymentAttemptFactory(
        invoice=invoice,
        status=PaymentAttemptStatus.PROCESSING,
        with_gateway_ref=True,
    )


@pytest.fixture
def pending_attempt(invoice):
    return PaymentAttemptFactory(
        invoice=invoice,
        status=PaymentAttemptStatus.PENDING,
        with_gateway_ref=True,
    )


@pytest.fixture
def failed_attempt(invoice):
    return PaymentAttemptFactory(
        invoice=invoice,
        status=PaymentAttemptStatus.FAILED,
        with_gateway_ref=True,
    )
