"""Host event adapters.

PadWebhooks is the single context object the host server talks to.  It owns
the settings store, the change ledger, the debounce timer and the delivery
dispatcher, and translates the three host event kinds into ledger mutations
followed by a debounce signal:

    user change        -> record_change    -> signal
    revision committed -> confirm_revision -> signal (always)
    user disconnect    ->                     signal

Every adapter is a no-op while no settings block is loaded.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

import structlog

from padhooks.config import SettingsStore
from padhooks.dispatch.debounce import Debouncer, TimerLoop
from padhooks.dispatch.dispatcher import ChannelFactory, DeliveryDispatcher
from padhooks.ledger.change_ledger import ChangeLedger
from padhooks.models.changes import RevisionCommittedEvent, UserChangeEvent, UserDisconnectEvent
from padhooks.models.config import DebounceConfig, WebhookSettings
from padhooks.notifications import build_webhook_channels
from padhooks.observability.metrics import dropped_events_total

_log = structlog.get_logger(component="hooks")

USER_CHANGES = "USER_CHANGES"


class PadWebhooks:
    """Change tracking and webhook delivery for one host server.

    Args:
        debounce:        Quiet period and max-wait for flushes.
        settings_store:  Store holding the delivery settings; a fresh, unset
                         store by default.
        channel_factory: Builds delivery channels from settings at flush
                         time.  Tests swap in channels with a mock transport.
        loop:            Loop used for flush timers; defaults to the running
                         loop at the first signal.
    """

    def __init__(
        self,
        debounce: DebounceConfig | None = None,
        settings_store: SettingsStore | None = None,
        channel_factory: ChannelFactory = build_webhook_channels,
        loop: TimerLoop | None = None,
    ) -> None:
        debounce = debounce or DebounceConfig()
        self.settings = settings_store or SettingsStore()
        self.ledger = ChangeLedger()
        self.dispatcher = DeliveryDispatcher(
            ledger=self.ledger,
            settings_provider=lambda: self.settings.current,
            channel_factory=channel_factory,
        )
        self.debouncer = Debouncer(
            callback=self.dispatcher.flush,
            wait=debounce.quiet_seconds,
            max_wait=debounce.max_wait_seconds,
            loop=loop,
        )

    # ------------------------------------------------------------------
    # Settings
    # ------------------------------------------------------------------

    def load_settings(self, raw_settings: Mapping[str, Any] | None) -> WebhookSettings | None:
        """Install the plugin block from the host's settings.  See SettingsStore.load."""
        return self.settings.load(raw_settings)

    def _active(self, event: str) -> bool:
        if self.settings.is_loaded:
            return True
        _log.debug("event_ignored", hook=event, reason="plugin not configured")
        return False

    # ------------------------------------------------------------------
    # Event adapters
    # ------------------------------------------------------------------

    def on_user_change(self, event: UserChangeEvent) -> None:
        if not self._active("user_change"):
            return
        recorded = self.ledger.record_change(
            pad_id=event.pad_id,
            user_id=event.user_id,
            revision=event.revision,
            client_ip=event.client_ip,
            author_id=event.author_id or None,
        )
        if recorded:
            self.debouncer.signal()

    def on_revision_committed(self, event: RevisionCommittedEvent) -> None:
        if not self._active("revision_committed"):
            return
        self.ledger.confirm_revision(event.pad_id, event.author_id, event.head_revision)
        self.debouncer.signal()

    def on_user_disconnect(self, event: UserDisconnectEvent) -> None:
        """Nudge the timer so the leaving user's last edits are not held back."""
        if not self._active("user_disconnect"):
            return
        _log.debug("user_disconnected", user_id=event.user_id, pad_id=event.pad_id or None)
        self.debouncer.signal()

    def handle_message(
        self,
        message: Mapping[str, Any],
        session_info: Mapping[str, Any] | None = None,
    ) -> list[Mapping[str, Any]]:
        """Host ``handleMessage`` hook.

        Picks USER_CHANGES messages out of the client message stream and
        records them against the sender's session (``padId``, ``author``,
        ``ip``).  The message itself is always passed through unchanged.
        """
        data = message.get("data")
        if self.settings.is_loaded and isinstance(data, Mapping) and data.get("type") == USER_CHANGES:
            session = session_info or {}
            pad_id = session.get("padId")
            if pad_id:
                _log.debug("pad_changed", pad_id=pad_id)
                self.on_user_change(
                    UserChangeEvent.from_host(
                        {
                            "padId": pad_id,
                            "userId": session.get("author"),
                            "rev": data.get("baseRev"),
                            "ip": session.get("ip"),
                        }
                    )
                )
            else:
                _log.warning("pad_changed_without_pad_id")
                dropped_events_total.labels(reason="missing_pad_id").inc()
        return [message]

    # ------------------------------------------------------------------
    # Shutdown
    # ------------------------------------------------------------------

    async def close(self, timeout: float | None = None) -> None:
        """Flush a pending burst now and wait for outstanding deliveries."""
        self.debouncer.flush()
        await self.dispatcher.wait_closed(timeout=timeout)
