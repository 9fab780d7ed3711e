"""Core data structures for padhooks."""

from padhooks.models.changes import (
    ChangeRecord,
    RevisionCommittedEvent,
    UserChangeEvent,
    UserDisconnectEvent,
)
from padhooks.models.config import DebounceConfig, LogConfig, PadHooksConfig, WebhookSettings

__all__ = [
    "ChangeRecord",
    "DebounceConfig",
    "LogConfig",
    "PadHooksConfig",
    "RevisionCommittedEvent",
    "UserChangeEvent",
    "UserDisconnectEvent",
    "WebhookSettings",
]
