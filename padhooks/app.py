"""Application bootstrap for padhooks.

Wires the plugin in dependency order and manages its lifecycle inside the
host's asyncio loop.
Startup order: config → logging → PadWebhooks → settings block

Shutdown flushes whatever is pending and gives in-flight deliveries a grace
period before abandoning them.  Pending changes are not persisted.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from padhooks.config import load_config, load_settings_file
from padhooks.hooks import PadWebhooks
from padhooks.models.config import PadHooksConfig
from padhooks.observability.logging import get_logger, setup_logging

if TYPE_CHECKING:
    import structlog

    from padhooks.dispatch.dispatcher import ChannelFactory

_SHUTDOWN_GRACE_SECONDS = 15


class PadHooksApp:
    """Application root.  Owns the PadWebhooks instance the host calls into.

    ``stop()`` is safe to call on an app that was never started or is
    already stopped.
    """

    def __init__(self, channel_factory: ChannelFactory | None = None) -> None:
        self.config: PadHooksConfig | None = None
        self.plugin: PadWebhooks | None = None
        self._channel_factory = channel_factory
        self._running = False
        self._log: structlog.stdlib.BoundLogger | None = None

    @property
    def running(self) -> bool:
        return self._running

    async def start(self, raw_settings: Mapping[str, Any] | None = None) -> PadWebhooks:
        """Build the plugin and load its settings block.

        *raw_settings* is the host's full settings mapping.  When omitted,
        the JSON file named by ``PADHOOKS_SETTINGS_FILE`` is read instead.

        Raises ConfigurationError if the settings block is invalid; the host
        should treat that as fatal.
        """
        # --- 1. Configuration -------------------------------------------
        self.config = load_config()

        # --- 2. Logging -------------------------------------------------
        setup_logging(self.config.log.level)
        self._log = get_logger("app")
        self._log.info("padhooks starting", version=_padhooks_version())

        # --- 3. Plugin --------------------------------------------------
        kwargs: dict[str, Any] = {}
        if self._channel_factory is not None:
            kwargs["channel_factory"] = self._channel_factory
        plugin = PadWebhooks(debounce=self.config.debounce, **kwargs)

        # --- 4. Settings block ------------------------------------------
        if raw_settings is None and self.config.settings_file:
            self._log.debug("reading settings file", path=self.config.settings_file)
            raw_settings = load_settings_file(self.config.settings_file)
        plugin.load_settings(raw_settings)

        self.plugin = plugin
        self._running = True
        self._log.info(
            "padhooks started",
            quiet_ms=self.config.debounce.quiet_ms,
            max_wait_ms=self.config.debounce.max_wait_ms,
        )
        return plugin

    async def stop(self) -> None:
        """Flush pending changes and wait for in-flight deliveries."""
        if not self._running or self.plugin is None:
            return
        log = self._log or get_logger("app")
        log.info("padhooks shutting down")
        self._running = False
        try:
            await self.plugin.close(timeout=_SHUTDOWN_GRACE_SECONDS)
        except Exception as exc:
            log.error("shutdown flush raised an error", error=str(exc))
        log.info("padhooks stopped")


def _padhooks_version() -> str:
    from padhooks import __version__

    return __version__
