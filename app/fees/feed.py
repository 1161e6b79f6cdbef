"""
Admin dispute feed.

Finance staff keep a WebSocket open (see fees.consumers) that shows the
school's open disputes and stuck payments. The feed is refreshed two ways:

- PeriodicRefresh re-sends the full snapshot on a fixed interval, so stuck
  payments appear as they cross the threshold. The task belongs to the
  WebSocket session and is cancelled when it closes.
- publish_dispute_event() pushes submissions and resolutions to the
  school's channel group as soon as their transaction commits.

Usage:
    transaction.on_commit(lambda: publish_dispute_event(dispute, "dispute.resolved"))
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import Awaitable, Callable

from asgiref.sync import async_to_sync
from channels.layers import get_channel_layer
from django.utils import timezone

from fees.models import PaymentDispute
from fees.serializers import PaymentAttemptSerializer, PaymentDisputeSerializer

logger = logging.getLogger(__name__)

EVENT_DISPUTE_SUBMITTED = "dispute.submitted"
EVENT_DISPUTE_UNDER_REVIEW = "dispute.under_review"
EVENT_DISPUTE_RESOLVED = "dispute.resolved"


def dispute_feed_group(tenant_id) -> str:
    """Channel group for a school's dispute feed."""
    return f"fees_disputes_{tenant_id}"


# =============================================================================
# Snapshot
# =============================================================================


def admin_overview(tenant) -> dict:
    """Active disputes (oldest first) and stuck payments of a school."""
    from fees.services.stuck_payments import StuckPaymentDetector

    disputes = (
        PaymentDispute.objects.for_tenant(tenant)
        .active()
        .select_related("student", "invoice")
        .oldest()
    )
    return {
        "disputes": disputes,
        "stuck_payments": StuckPaymentDetector.find_stuck_attempts(tenant),
    }


def build_snapshot(tenant) -> dict:
    """Serialized admin_overview() for the feed."""
    overview = admin_overview(tenant)
    return {
        "disputes": PaymentDisputeSerializer(overview["disputes"], many=True).data,
        "stuck_payments": PaymentAttemptSerializer(
            overview["stuck_payments"], many=True
        ).data,
        "generated_at": timezone.now().isoformat(),
    }


# =============================================================================
# Events
# =============================================================================


def publish_dispute_event(dispute: PaymentDispute, event: str) -> None:
    """Send a dispute event to the school's feed group."""
    channel_layer = get_channel_layer()
    if channel_layer is None:
        return

    async_to_sync(channel_layer.group_send)(
        dispute_feed_group(dispute.tenant_id),
        {
            "type": "dispute.event",
            "event": event,
            "dispute": dict(PaymentDisputeSerializer(dispute).data),
        },
    )
    logger.debug(
        "Dispute event published",
        extra={"dispute_id": str(dispute.id), "event": event},
    )


# =============================================================================
# Periodic Refresh
# =============================================================================


class PeriodicRefresh:
    """
    Runs an async callback every `interval` seconds until stopped.

    The first call happens one interval after start(). A callback that
    raises is logged and the loop keeps going.

    Usage:
        refresh = PeriodicRefresh(self.send_snapshot, interval=60)
        refresh.start()
        ...
        await refresh.stop()
    """

    def __init__(self, callback: Callable[[], Awaitable[None]], interval: float) -> None:
        self.callback = callback
        self.interval = interval
        self._task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if not self.is_running:
            self._task = asyncio.create_task(self._run())

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await self._task
        self._task = None

    async def _run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.callback()
            except Exception:
                logger.exception("Periodic feed refresh failed")
