"""Outbound delivery for padhooks.

Exports:
    DeliveryChannel        -- Abstract base for channel implementations.
    WebhookDeliveryChannel -- JSON POST channel with X-API-KEY and custom CA.
    build_webhook_channels -- One channel per configured endpoint, in order.
"""

from __future__ import annotations

import httpx
import structlog

from padhooks.models.config import WebhookSettings
from padhooks.notifications.manager import DeliveryChannel
from padhooks.notifications.webhook import WebhookDeliveryChannel

_log = structlog.get_logger(component="notifications")

__all__ = [
    "DeliveryChannel",
    "WebhookDeliveryChannel",
    "build_webhook_channels",
]


def build_webhook_channels(
    settings: WebhookSettings,
    transport: httpx.AsyncBaseTransport | None = None,
) -> list[DeliveryChannel]:
    """Build a WebhookDeliveryChannel for every endpoint in *settings*.

    Endpoints that cannot form a channel are skipped with a warning so that
    one bad entry does not disable the others.
    """
    channels: list[DeliveryChannel] = []
    for url in settings.endpoints:
        try:
            channels.append(
                WebhookDeliveryChannel(
                    url=url,
                    api_key=settings.api_key,
                    ca_cert=settings.ca_cert,
                    transport=transport,
                )
            )
        except ValueError as exc:
            _log.warning("webhook_channel_skipped", url=url, reason=str(exc))
    return channels
