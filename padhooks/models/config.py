"""Configuration data structures."""

from __future__ import annotations

from dataclasses import dataclass, field


@dataclass(frozen=True)
class WebhookSettings:
    """Delivery settings read from the host's plugin settings block.

    Installed once at load time and replaced wholesale on reload; never
    mutated in place.
    """

    endpoints: tuple[str, ...] = ()
    api_key: str = ""
    ca_cert: str | None = None


@dataclass
class DebounceConfig:
    """Flush timing for the debounced dispatcher."""

    quiet_ms: int = 1000
    max_wait_ms: int = 5000

    @property
    def quiet_seconds(self) -> float:
        return self.quiet_ms / 1000.0

    @property
    def max_wait_seconds(self) -> float:
        return self.max_wait_ms / 1000.0


@dataclass
class LogConfig:
    """Logging configuration."""

    level: str = "info"


@dataclass
class PadHooksConfig:
    """Top-level process configuration."""

    settings_file: str = ""
    debounce: DebounceConfig = field(default_factory=DebounceConfig)
    log: LogConfig = field(default_factory=LogConfig)
