"""
WebSocket consumer for the admin dispute feed.

Connection:
    ws://host/ws/fees/disputes/?token=<jwt>

Only admins and accountants of an active school may connect. On connect
the consumer sends a snapshot, starts a periodic refresh owned by this
session and joins the school's dispute group.

Message Types (to client):
    - snapshot: {"disputes": [...], "stuck_payments": [...], "generated_at": ...}
    - dispute.submitted / dispute.resolved: {"dispute": {...}}
    - error: {"message": ...}

Message Types (from client):
    - refresh: Send a snapshot now

Close Codes:
    4001: Not authenticated
    4003: Not finance staff of an active school
"""

from __future__ import annotations

import logging

from channels.db import database_sync_to_async
from channels.generic.websocket import AsyncJsonWebsocketConsumer
from django.conf import settings

from fees.feed import PeriodicRefresh, build_snapshot, dispute_feed_group

logger = logging.getLogger(__name__)


class DisputeFeedConsumer(AsyncJsonWebsocketConsumer):
    """
    Live view of a school's open disputes and stuck payments.

    Attributes:
        tenant_id: School the feed belongs to
        group_name: Channel group receiving dispute events
        refresh: Periodic snapshot task, cancelled on disconnect
    """

    def __init__(self, *args, **kwargs):
        super().__init__(*args, **kwargs)
        self.tenant_id = None
        self.group_name: str | None = None
        self.refresh: PeriodicRefresh | None = None

    async def connect(self):
        user = self.scope.get("user")

        if not user or not user.is_authenticated:
            logger.warning("Rejected unauthenticated dispute feed connection")
            await self.close(code=4001)
            return

        if not user.has_active_tenant or not user.is_finance_staff:
            logger.warning(
                "Rejected dispute feed connection",
                extra={"user_id": str(user.pk), "role": user.role},
            )
            await self.close(code=4003)
            return

        self.tenant_id = user.tenant_id
        self.group_name = dispute_feed_group(self.tenant_id)
        await self.channel_layer.group_add(self.group_name, self.channel_name)
        await self.accept()

        await self.send_snapshot()
        self.refresh = PeriodicRefresh(
            self.send_snapshot,
            interval=settings.FEES_DISPUTE_FEED_INTERVAL_SECONDS,
        )
        self.refresh.start()

        logger.info(
            "Dispute feed connected",
            extra={"user_id": str(user.pk), "tenant_id": str(self.tenant_id)},
        )

    async def disconnect(self, close_code):
        if self.refresh is not None:
            await self.refresh.stop()
            self.refresh = None
        if self.group_name:
            await self.channel_layer.group_discard(self.group_name, self.channel_name)
            logger.info(
                "Dispute feed disconnected",
                extra={"tenant_id": str(self.tenant_id), "close_code": close_code},
            )

    async def receive_json(self, content, **kwargs):
        message_type = content.get("type") if isinstance(content, dict) else None
        if message_type == "refresh":
            await self.send_snapshot()
        else:
            await self.send_json(
                {"type": "error", "message": f"Unknown message type: {message_type}"}
            )

    async def send_snapshot(self):
        snapshot = await self._build_snapshot()
        await self.send_json({"type": "snapshot", **snapshot})

    async def dispute_event(self, event):
        """Relay dispute.event messages from the channel layer."""
        await self.send_json({"type": event["event"], "dispute": event["dispute"]})

    @database_sync_to_async
    def _build_snapshot(self) -> dict:
        return build_snapshot(self.tenant_id)
