"""Configuration loading.

Two sources feed padhooks:

* Process configuration (flush timing, log level, settings file path) from
  ``PADHOOKS_*`` environment variables, via :func:`load_config`.
* Delivery settings (webhook endpoints, API key, optional CA certificate)
  from the host server's settings block named ``ep_webhooks``, via
  :class:`SettingsStore`.
"""

from __future__ import annotations

import json
import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import structlog

from padhooks.models.config import DebounceConfig, LogConfig, PadHooksConfig, WebhookSettings

_log = structlog.get_logger(component="config")

PLUGIN_NAME = "ep_webhooks"
PEM_CERT_MARKER = "-----BEGIN CERTIFICATE-----"


class ConfigurationError(Exception):
    """Raised when the plugin settings block cannot be used.

    Fatal: the host is expected to halt startup.
    """


def _env(key: str, default: str = "") -> str:
    return os.environ.get(f"PADHOOKS_{key}", default)


def _env_int(key: str, default: int, min_val: int | None = None, max_val: int | None = None) -> int:
    val = int(_env(key, str(default)))
    if min_val is not None:
        val = max(val, min_val)
    if max_val is not None:
        val = min(val, max_val)
    return val


def _validate_log_level(value: str) -> str:
    valid = {"debug", "info", "warning", "error"}
    if value.lower() not in valid:
        raise ValueError(f"Invalid log level: {value}. Must be one of {valid}")
    return value.lower()


def load_config() -> PadHooksConfig:
    """Load process configuration from PADHOOKS_* environment variables."""
    quiet_ms = _env_int("DEBOUNCE_QUIET_MS", 1000, min_val=10, max_val=60_000)
    return PadHooksConfig(
        settings_file=_env("SETTINGS_FILE", ""),
        debounce=DebounceConfig(
            quiet_ms=quiet_ms,
            # max-wait below the quiet period would turn every flush into a ceiling flush
            max_wait_ms=_env_int("DEBOUNCE_MAX_WAIT_MS", 5000, min_val=quiet_ms, max_val=600_000),
        ),
        log=LogConfig(
            level=_validate_log_level(_env("LOG_LEVEL", "info")),
        ),
    )


def load_settings_file(path: str | Path) -> dict[str, Any]:
    """Read the host's JSON settings file."""
    with Path(path).open(encoding="utf-8") as fh:
        try:
            data = json.load(fh)
        except json.JSONDecodeError as exc:
            raise ConfigurationError(f"Settings file {path} is not valid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ConfigurationError(f"Settings file {path} must contain a JSON object")
    return data


def parse_settings(block: Mapping[str, Any]) -> WebhookSettings:
    """Validate a plugin settings block and build WebhookSettings.

    Raises:
        ConfigurationError: ``caCert`` is set but is not a PEM certificate.
    """
    ca_cert = block.get("caCert") or None
    if ca_cert is not None and (not isinstance(ca_cert, str) or not ca_cert.startswith(PEM_CERT_MARKER)):
        raise ConfigurationError(
            "Invalid configuration! If you provide caCert, make sure it looks like a cert."
        )

    endpoints = block.get("endpoints")
    if endpoints is None:
        # legacy nesting: {"pads": {"update": [...]}}
        pads = block.get("pads")
        endpoints = pads.get("update") if isinstance(pads, Mapping) else None

    if endpoints is None:
        endpoints = []
    elif not isinstance(endpoints, list) or not all(isinstance(url, str) for url in endpoints):
        _log.warning("endpoints_ignored", reason="expected a list of URL strings")
        endpoints = []

    api_key = block.get("apiKey")
    return WebhookSettings(
        endpoints=tuple(url for url in endpoints if url),
        api_key="" if api_key is None else str(api_key),
        ca_cert=ca_cert,
    )


class SettingsStore:
    """Holds the currently installed WebhookSettings.

    ``current`` is None until a settings block has been loaded successfully.
    While unset, every event adapter is a no-op and flushes deliver nothing.
    """

    def __init__(self, plugin_name: str = PLUGIN_NAME) -> None:
        self._plugin_name = plugin_name
        self._current: WebhookSettings | None = None

    @property
    def current(self) -> WebhookSettings | None:
        return self._current

    @property
    def is_loaded(self) -> bool:
        return self._current is not None

    def load(self, raw_settings: Mapping[str, Any] | None) -> WebhookSettings | None:
        """Install settings from the host's full settings mapping.

        A missing plugin block leaves the store unset and logs a warning.  An
        empty block still installs settings, just with nothing to deliver to.
        An invalid block raises ConfigurationError and also leaves the store
        unset.  A successful load replaces whatever was installed before.
        """
        block = raw_settings.get(self._plugin_name) if raw_settings is not None else None
        if block is None:
            _log.warning("plugin_configuration_not_found", plugin=self._plugin_name)
            self._current = None
            return None

        if not isinstance(block, Mapping):
            self._current = None
            raise ConfigurationError(f"Settings block {self._plugin_name!r} must be an object")

        try:
            settings = parse_settings(block)
        except ConfigurationError as exc:
            _log.error("invalid_plugin_configuration", plugin=self._plugin_name, error=str(exc))
            self._current = None
            raise

        self._current = settings
        _log.info(
            "settings_loaded",
            endpoint_count=len(settings.endpoints),
            custom_ca=settings.ca_cert is not None,
        )
        return settings
