"""JSON webhook delivery channel.

POSTs a drained change batch to one configured endpoint, authenticated with
a static ``X-API-KEY`` header.  When a custom CA certificate is configured,
the endpoint's chain is verified against the system trust store plus that CA.
"""

from __future__ import annotations

import ssl

import httpx
import structlog

from padhooks.notifications.manager import DeliveryChannel

_log = structlog.get_logger(component="notifications.webhook")

API_KEY_HEADER = "X-API-KEY"


def build_ssl_context(ca_cert: str) -> ssl.SSLContext:
    """Default trust store augmented with the PEM-encoded *ca_cert*."""
    context = ssl.create_default_context()
    context.load_verify_locations(cadata=ca_cert)
    return context


class WebhookDeliveryChannel(DeliveryChannel):
    """Delivers batches by POSTing a JSON payload to a URL.

    Args:
        url:       Full endpoint URL.
        api_key:   Value sent in the ``X-API-KEY`` header.
        ca_cert:   Optional PEM CA certificate trusted in addition to the
                   system roots.
        transport: Optional httpx transport, used by tests.

    Request timeouts are left at httpx's defaults.
    """

    def __init__(
        self,
        url: str,
        api_key: str = "",
        ca_cert: str | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if not url:
            raise ValueError("Webhook url must not be empty")
        self._url = url
        self._api_key = api_key
        self._ca_cert = ca_cert
        self._transport = transport

    @property
    def channel_name(self) -> str:
        return "webhook"

    @property
    def target(self) -> str:
        return self._url

    def _verify(self) -> ssl.SSLContext | bool:
        if self._ca_cert:
            return build_ssl_context(self._ca_cert)
        return True

    async def send(self, payload: dict[str, object]) -> bool:
        """POST *payload* as JSON.  Returns True on a 2xx response."""
        headers = {
            "Content-Type": "application/json",
            API_KEY_HEADER: self._api_key,
        }

        try:
            async with httpx.AsyncClient(verify=self._verify(), transport=self._transport) as client:
                response = await client.post(self._url, json=payload, headers=headers)
                if response.is_success:
                    return True
                _log.warning(
                    "webhook_non_2xx_response",
                    url=self._url,
                    status_code=response.status_code,
                    body=response.text[:200],
                )
                return False
        except httpx.TimeoutException as exc:
            _log.warning("webhook_request_timeout", url=self._url, error=str(exc))
            return False
        except httpx.HTTPError as exc:
            _log.error("webhook_post_failed", url=self._url, error=str(exc))
            return False
        except ssl.SSLError as exc:
            _log.error("webhook_tls_error", url=self._url, error=str(exc))
            return False
