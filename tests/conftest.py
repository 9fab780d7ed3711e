"""Shared fixtures for padhooks tests.

FakeLoop stands in for the asyncio loop in debounce tests so timing can be
asserted exactly.  RecordingTransport is an httpx mock transport that keeps
every request it receives and answers per-URL.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import UTC, datetime, timedelta

import httpx
import pytest

from padhooks.models.config import WebhookSettings
from padhooks.notifications import DeliveryChannel, build_webhook_channels

# ---------------------------------------------------------------------------
# Fake timer loop
# ---------------------------------------------------------------------------


@dataclass
class FakeTimerHandle:
    when: float
    callback: Callable[[], object]
    cancelled: bool = False

    def cancel(self) -> None:
        self.cancelled = True


class FakeLoop:
    """Manual clock implementing ``time()`` and ``call_later()``."""

    def __init__(self, start: float = 100.0) -> None:
        self.now = start
        self._timers: list[FakeTimerHandle] = []

    def time(self) -> float:
        return self.now

    def call_later(self, delay: float, callback: Callable[[], object]) -> FakeTimerHandle:
        handle = FakeTimerHandle(when=self.now + delay, callback=callback)
        self._timers.append(handle)
        return handle

    @property
    def scheduled(self) -> list[FakeTimerHandle]:
        return [t for t in self._timers if not t.cancelled]

    def advance(self, seconds: float) -> None:
        """Move the clock forward, running due timers in deadline order."""
        target = self.now + seconds
        while True:
            due = sorted(
                (t for t in self._timers if not t.cancelled and t.when <= target),
                key=lambda t: t.when,
            )
            if not due:
                break
            timer = due[0]
            self._timers.remove(timer)
            self.now = timer.when
            timer.callback()
        self.now = target


@pytest.fixture
def fake_loop() -> FakeLoop:
    return FakeLoop()


# ---------------------------------------------------------------------------
# HTTP
# ---------------------------------------------------------------------------


@dataclass
class RecordingTransport:
    """Answers 200 unless the URL is listed in ``failures`` or ``statuses``."""

    failures: set[str] = field(default_factory=set)
    statuses: dict[str, int] = field(default_factory=dict)
    requests: list[httpx.Request] = field(default_factory=list)

    def handler(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        url = str(request.url)
        if url in self.failures:
            raise httpx.ConnectError("connection refused", request=request)
        return httpx.Response(self.statuses.get(url, 200), json={"ok": True})

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self.handler)

    def bodies(self) -> list[dict]:
        return [json.loads(r.content) for r in self.requests]

    def urls(self) -> list[str]:
        return [str(r.url) for r in self.requests]

    def channel_factory(self) -> Callable[[WebhookSettings], list[DeliveryChannel]]:
        transport = self.transport
        return lambda settings: build_webhook_channels(settings, transport=transport)


@pytest.fixture
def recorder() -> RecordingTransport:
    return RecordingTransport()


# ---------------------------------------------------------------------------
# Settings helpers
# ---------------------------------------------------------------------------

TEST_CA_CERT = (
    "-----BEGIN CERTIFICATE-----\n"
    "MIIBszCCAVmgAwIBAgIUTestOnlyNotARealCertificate0wCgYIKoZIzj0EAwIw\n"
    "-----END CERTIFICATE-----\n"
)


def make_raw_settings(
    endpoints: list[str] | None = None,
    api_key: str = "secret-key",
    ca_cert: str | None = None,
) -> dict:
    """Build a host settings mapping with an ``ep_webhooks`` block."""
    block: dict = {
        "endpoints": endpoints if endpoints is not None else ["https://hooks.example.com/pads"],
        "apiKey": api_key,
    }
    if ca_cert is not None:
        block["caCert"] = ca_cert
    return {"title": "Etherpad", "ep_webhooks": block}


def make_ca_pem(common_name: str = "padhooks test CA") -> str:
    """Generate a self-signed CA certificate and return it PEM-encoded."""
    from cryptography import x509
    from cryptography.hazmat.primitives import hashes, serialization
    from cryptography.hazmat.primitives.asymmetric import ec
    from cryptography.x509.oid import NameOID

    key = ec.generate_private_key(ec.SECP256R1())
    name = x509.Name([x509.NameAttribute(NameOID.COMMON_NAME, common_name)])
    now = datetime.now(UTC)
    cert = (
        x509.CertificateBuilder()
        .subject_name(name)
        .issuer_name(name)
        .public_key(key.public_key())
        .serial_number(x509.random_serial_number())
        .not_valid_before(now - timedelta(days=1))
        .not_valid_after(now + timedelta(days=30))
        .add_extension(x509.BasicConstraints(ca=True, path_length=None), critical=True)
        .sign(key, hashes.SHA256())
    )
    return cert.public_bytes(serialization.Encoding.PEM).decode("ascii")
