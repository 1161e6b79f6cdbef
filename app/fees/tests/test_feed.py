"""
Tests for the admin dispute feed helpers.
"""

import asyncio
from datetime import timedelta
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from django.utils import timezone
from freezegun import freeze_time

from authentication.tests.factories import StudentFactory
from fees.feed import (
    EVENT_DISPUTE_RESOLVED,
    PeriodicRefresh,
    admin_overview,
    build_snapshot,
    dispute_feed_group,
    publish_dispute_event,
)
from fees.state_machines import DisputeStatus, PaymentAttemptStatus
from fees.tests.factories import (
    FeeInvoiceFactory,
    PaymentAttemptFactory,
    PaymentDisputeFactory,
)


@pytest.mark.django_db
class TestSnapshot:
    def test_overview_lists_active_disputes_oldest_first(self, school, student):
        with freeze_time(timezone.now() - timedelta(days=2)):
            older = PaymentDisputeFactory(invoice=FeeInvoiceFactory(student=student))
        newer = PaymentDisputeFactory(
            invoice=FeeInvoiceFactory(student=StudentFactory(tenant=school))
        )
        PaymentDisputeFactory(
            invoice=FeeInvoiceFactory(student=student),
            status=DisputeStatus.REJECTED,
        )

        overview = admin_overview(school)

        assert list(overview["disputes"]) == [older, newer]

    def test_snapshot_is_plain_json(self, school, invoice, other_school):
        dispute = PaymentDisputeFactory(invoice=invoice)
        with freeze_time(timezone.now() - timedelta(hours=2)):
            stuck = PaymentAttemptFactory(
                invoice=invoice,
                status=PaymentAttemptStatus.PROCESSING,
                with_gateway_ref=True,
            )
        PaymentDisputeFactory(
            invoice=FeeInvoiceFactory(student=StudentFactory(tenant=other_school))
        )

        snapshot = build_snapshot(school)

        assert [row["id"] for row in snapshot["disputes"]] == [str(dispute.id)]
        assert [row["id"] for row in snapshot["stuck_payments"]] == [str(stuck.id)]
        assert snapshot["disputes"][0]["amount"] == "5000.00"
        assert "generated_at" in snapshot


@pytest.mark.django_db
class TestPublishDisputeEvent:
    def test_sends_to_school_group(self, invoice):
        dispute = PaymentDisputeFactory(invoice=invoice)
        layer = MagicMock()
        layer.group_send = AsyncMock()

        with patch("fees.feed.get_channel_layer", return_value=layer):
            publish_dispute_event(dispute, EVENT_DISPUTE_RESOLVED)

        layer.group_send.assert_awaited_once()
        group, message = layer.group_send.await_args.args
        assert group == dispute_feed_group(invoice.tenant_id)
        assert message["type"] == "dispute.event"
        assert message["event"] == EVENT_DISPUTE_RESOLVED
        assert message["dispute"]["id"] == str(dispute.id)

    def test_no_channel_layer_is_noop(self, invoice):
        dispute = PaymentDisputeFactory(invoice=invoice)

        with patch("fees.feed.get_channel_layer", return_value=None):
            publish_dispute_event(dispute, EVENT_DISPUTE_RESOLVED)


class TestPeriodicRefresh:
    def test_calls_callback_every_interval_until_stopped(self):
        calls = []

        async def callback():
            calls.append(1)

        async def scenario():
            refresh = PeriodicRefresh(callback, interval=0.01)
            refresh.start()
            assert refresh.is_running
            await asyncio.sleep(0.1)
            await refresh.stop()
            assert not refresh.is_running
            stopped_at = len(calls)
            await asyncio.sleep(0.05)
            return stopped_at

        stopped_at = asyncio.run(scenario())

        assert stopped_at >= 2
        assert len(calls) == stopped_at

    def test_failing_callback_does_not_stop_loop(self):
        calls = []

        async def callback():
            calls.append(1)
            if len(calls) == 1:
                raise RuntimeError("db down")

        async def scenario():
            refresh = PeriodicRefresh(callback, interval=0.01)
            refresh.start()
            await asyncio.sleep(0.08)
            await refresh.stop()

        asyncio.run(scenario())

        assert len(calls) >= 2

    def test_start_twice_keeps_single_task(self):
        async def scenario():
            refresh = PeriodicRefresh(AsyncMock(), interval=10)
            refresh.start()
            task = refresh._task
            refresh.start()
            same = refresh._task is task
            await refresh.stop()
            return same

        assert asyncio.run(scenario()) is True

    def test_stop_before_start(self):
        asyncio.run(PeriodicRefresh(AsyncMock(), interval=1).stop())
