"""Drains the change ledger and fans the batch out to every webhook.

DeliveryDispatcher.flush is the debouncer's callback.  It runs on the event
loop, swaps the ledger for an empty one, and schedules one background task
per endpoint.  Those tasks only log and count their outcome; they never touch
the ledger, so changes arriving mid-delivery start a fresh batch.
"""

from __future__ import annotations

import asyncio
from collections.abc import Callable

import structlog

from padhooks.ledger.change_ledger import ChangeLedger, PendingChanges
from padhooks.models.config import WebhookSettings
from padhooks.notifications import DeliveryChannel, build_webhook_channels
from padhooks.observability.metrics import flushes_total, webhook_deliveries_total

_log = structlog.get_logger(component="dispatch.dispatcher")

SettingsProvider = Callable[[], WebhookSettings | None]
ChannelFactory = Callable[[WebhookSettings], list[DeliveryChannel]]


def build_payload(batch: PendingChanges) -> dict[str, object]:
    """Wire body: ``{"pads": {pad_id: [{userId, revision, clientIp}, ...]}}``."""
    return {
        "pads": {pad_id: [record.to_payload() for record in records] for pad_id, records in batch.items()},
    }


class DeliveryDispatcher:
    """Fire-and-forget fan-out of drained ledger batches.

    * Never raises into the caller; every delivery failure is logged.
    * Never blocks the caller; deliveries run as background asyncio tasks.
    * Reads settings at flush time, so a reload affects the next flush only.
    """

    def __init__(
        self,
        ledger: ChangeLedger,
        settings_provider: SettingsProvider,
        channel_factory: ChannelFactory = build_webhook_channels,
    ) -> None:
        self._ledger = ledger
        self._settings_provider = settings_provider
        self._channel_factory = channel_factory
        self._in_flight: set[asyncio.Task[None]] = set()

    @property
    def in_flight(self) -> int:
        return len(self._in_flight)

    def flush(self) -> int:
        """Drain the ledger and schedule delivery of the batch.

        Returns the number of deliveries scheduled.
        """
        batch = self._ledger.drain()
        if not batch:
            return 0

        flushes_total.inc()
        settings = self._settings_provider()
        if settings is None or not settings.endpoints:
            _log.debug("batch_discarded", reason="no endpoints configured", pads=len(batch))
            return 0

        channels = self._channel_factory(settings)
        payload = build_payload(batch)
        _log.debug("flushing_changes", pads=sorted(batch), endpoints=len(channels))

        for channel in channels:
            task = asyncio.ensure_future(self._send_one(channel, payload))
            self._in_flight.add(task)
            task.add_done_callback(self._in_flight.discard)
        return len(channels)

    async def wait_closed(self, timeout: float | None = None) -> None:
        """Wait for outstanding deliveries to finish."""
        if not self._in_flight:
            return
        pending = list(self._in_flight)
        _, still_running = await asyncio.wait(pending, timeout=timeout)
        if still_running:
            _log.warning("deliveries_abandoned", count=len(still_running), timeout=timeout)
            for task in still_running:
                task.cancel()
            await asyncio.gather(*still_running, return_exceptions=True)

    async def _send_one(self, channel: DeliveryChannel, payload: dict[str, object]) -> None:
        """Deliver to a single channel, recording metrics regardless of outcome."""
        try:
            success = await channel.send(payload)
        except Exception as exc:  # noqa: BLE001
            _log.error(
                "delivery_channel_unexpected_error",
                channel=channel.channel_name,
                url=channel.target,
                error=str(exc),
            )
            success = False

        webhook_deliveries_total.labels(success="true" if success else "false").inc()

        if success:
            _log.info("webhook_delivered", channel=channel.channel_name, url=channel.target)
        else:
            _log.warning("webhook_delivery_failed", channel=channel.channel_name, url=channel.target)
