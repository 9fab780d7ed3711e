"""Tests for DeliveryDispatcher flush and fan-out behaviour."""

from __future__ import annotations

import asyncio

from structlog.testing import capture_logs

from padhooks.dispatch import DeliveryDispatcher, build_payload
from padhooks.ledger import ChangeLedger
from padhooks.models.config import WebhookSettings
from tests.conftest import RecordingTransport

_A = "https://a.example/hook"
_B = "https://b.example/hook"


def _make(
    recorder: RecordingTransport,
    settings: WebhookSettings | None,
) -> tuple[ChangeLedger, DeliveryDispatcher]:
    ledger = ChangeLedger()
    dispatcher = DeliveryDispatcher(
        ledger=ledger,
        settings_provider=lambda: settings,
        channel_factory=recorder.channel_factory(),
    )
    return ledger, dispatcher


class TestFlush:
    async def test_empty_ledger_sends_nothing(self, recorder: RecordingTransport) -> None:
        _, dispatcher = _make(recorder, WebhookSettings(endpoints=(_A,)))
        assert dispatcher.flush() == 0
        await dispatcher.wait_closed()
        assert recorder.requests == []

    async def test_no_endpoints_still_drains(self, recorder: RecordingTransport) -> None:
        ledger, dispatcher = _make(recorder, WebhookSettings(endpoints=()))
        ledger.record_change("pad1", "alice", 1, "1.2.3.4")

        assert dispatcher.flush() == 0
        await dispatcher.wait_closed()
        assert recorder.requests == []
        assert not ledger

    async def test_no_settings_still_drains(self, recorder: RecordingTransport) -> None:
        ledger, dispatcher = _make(recorder, None)
        ledger.record_change("pad1", "alice", 1, "1.2.3.4")
        assert dispatcher.flush() == 0
        assert not ledger

    async def test_confirmed_revision_reaches_the_wire(self, recorder: RecordingTransport) -> None:
        ledger, dispatcher = _make(recorder, WebhookSettings(endpoints=(_A,), api_key="k"))
        ledger.record_change("pad1", "alice", 5, "1.2.3.4")
        ledger.confirm_revision("pad1", "alice", 7)

        assert dispatcher.flush() == 1
        await dispatcher.wait_closed()

        assert recorder.bodies() == [
            {"pads": {"pad1": [{"userId": "alice", "revision": 7, "clientIp": "1.2.3.4"}]}}
        ]

    async def test_one_post_per_endpoint_in_order(self, recorder: RecordingTransport) -> None:
        ledger, dispatcher = _make(recorder, WebhookSettings(endpoints=(_A, _B), api_key="k"))
        ledger.record_change("pad1", "alice", 1, "1.2.3.4")

        assert dispatcher.flush() == 2
        await dispatcher.wait_closed()

        assert recorder.urls() == [_A, _B]
        assert recorder.bodies()[0] == recorder.bodies()[1]

    async def test_failed_endpoint_does_not_block_others(self, recorder: RecordingTransport) -> None:
        recorder.failures.add(_A)
        ledger, dispatcher = _make(recorder, WebhookSettings(endpoints=(_A, _B), api_key="k"))
        ledger.record_change("pad1", "alice", 1, "1.2.3.4")

        with capture_logs() as logs:
            dispatcher.flush()
            await dispatcher.wait_closed()

        assert recorder.urls() == [_A, _B]
        errors = [e for e in logs if e["log_level"] == "error"]
        assert any(e.get("url") == _A for e in errors)
        assert any(e["event"] == "webhook_delivered" and e["url"] == _B for e in logs)

    async def test_settings_are_read_at_flush_time(self, recorder: RecordingTransport) -> None:
        current = {"settings": WebhookSettings(endpoints=(_A,))}
        ledger = ChangeLedger()
        dispatcher = DeliveryDispatcher(
            ledger=ledger,
            settings_provider=lambda: current["settings"],
            channel_factory=recorder.channel_factory(),
        )
        ledger.record_change("pad1", "alice", 1, "1.2.3.4")
        current["settings"] = WebhookSettings(endpoints=(_B,))

        dispatcher.flush()
        await dispatcher.wait_closed()
        assert recorder.urls() == [_B]

    async def test_unexpected_channel_error_is_contained(self) -> None:
        class ExplodingChannel:
            channel_name = "webhook"
            target = _A

            async def send(self, payload: dict[str, object]) -> bool:
                raise RuntimeError("kaboom")

        ledger = ChangeLedger()
        dispatcher = DeliveryDispatcher(
            ledger=ledger,
            settings_provider=lambda: WebhookSettings(endpoints=(_A,)),
            channel_factory=lambda settings: [ExplodingChannel()],  # type: ignore[list-item]
        )
        ledger.record_change("pad1", "alice", 1, "1.2.3.4")

        with capture_logs() as logs:
            dispatcher.flush()
            await dispatcher.wait_closed()

        assert any(e["event"] == "delivery_channel_unexpected_error" for e in logs)
        assert dispatcher.in_flight == 0


class TestWaitClosed:
    async def test_timed_out_deliveries_are_cancelled_and_reaped(self) -> None:
        started = asyncio.Event()

        class HangingChannel:
            channel_name = "webhook"
            target = _A

            async def send(self, payload: dict[str, object]) -> bool:
                started.set()
                await asyncio.sleep(3600)
                return True

        ledger = ChangeLedger()
        dispatcher = DeliveryDispatcher(
            ledger=ledger,
            settings_provider=lambda: WebhookSettings(endpoints=(_A,)),
            channel_factory=lambda settings: [HangingChannel()],  # type: ignore[list-item]
        )
        ledger.record_change("pad1", "alice", 1, "1.2.3.4")
        dispatcher.flush()
        await started.wait()

        with capture_logs() as logs:
            await dispatcher.wait_closed(timeout=0.01)

        assert dispatcher.in_flight == 0
        assert any(e["event"] == "deliveries_abandoned" and e["count"] == 1 for e in logs)

    async def test_nothing_in_flight_returns_immediately(self, recorder: RecordingTransport) -> None:
        _, dispatcher = _make(recorder, WebhookSettings(endpoints=(_A,)))
        await dispatcher.wait_closed(timeout=0.01)
        assert dispatcher.in_flight == 0


class TestBuildPayload:
    def test_author_field_never_sent(self) -> None:
        ledger = ChangeLedger()
        ledger.record_change("pad1", "session-1", 3, "1.2.3.4", author_id="a.internal")
        ledger.record_change("pad2", "bob", 4, "5.6.7.8")

        payload = build_payload(ledger.drain())

        assert payload == {
            "pads": {
                "pad1": [{"userId": "session-1", "revision": 3, "clientIp": "1.2.3.4"}],
                "pad2": [{"userId": "bob", "revision": 4, "clientIp": "5.6.7.8"}],
            }
        }
        assert "a.internal" not in repr(payload)

    def test_empty_batch(self) -> None:
        assert build_payload({}) == {"pads": {}}
