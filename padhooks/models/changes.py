"""Change records and the host event structs that feed them."""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ChangeRecord:
    """One user's pending change on one pad.

    ``author_id`` links the record to revision-commit events and is never
    sent on the wire.
    """

    user_id: str
    revision: int
    client_ip: str
    author_id: str = field(default="", repr=False)

    def __post_init__(self) -> None:
        if not self.author_id:
            self.author_id = self.user_id

    def to_payload(self) -> dict[str, object]:
        """Serialise the user-facing fields for the webhook body."""
        return {
            "userId": self.user_id,
            "revision": self.revision,
            "clientIp": self.client_ip,
        }


def _first(context: Mapping[str, Any], *keys: str) -> Any:
    for key in keys:
        value = context.get(key)
        if value is not None:
            return value
    return None


def _as_str(value: Any) -> str:
    return "" if value is None else str(value)


def _as_int(value: Any) -> int:
    if value is None or isinstance(value, bool):
        return 0
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


@dataclass(frozen=True)
class UserChangeEvent:
    """A user submitted an edit to a pad."""

    pad_id: str
    user_id: str
    revision: int
    client_ip: str = ""
    author_id: str = ""

    @classmethod
    def from_host(cls, context: Mapping[str, Any]) -> UserChangeEvent:
        return cls(
            pad_id=_as_str(context.get("padId")),
            user_id=_as_str(context.get("userId")),
            revision=_as_int(_first(context, "rev", "revision", "baseRev")),
            client_ip=_as_str(_first(context, "clientIp", "ip")),
            author_id=_as_str(_first(context, "authorId", "author")),
        )


@dataclass(frozen=True)
class RevisionCommittedEvent:
    """A pad's head revision advanced for an author."""

    pad_id: str
    author_id: str
    head_revision: int

    @classmethod
    def from_host(cls, context: Mapping[str, Any]) -> RevisionCommittedEvent:
        return cls(
            pad_id=_as_str(context.get("padId")),
            author_id=_as_str(_first(context, "authorId", "author")),
            head_revision=_as_int(_first(context, "rev", "revision", "headRevision")),
        )


@dataclass(frozen=True)
class UserDisconnectEvent:
    """A user's editing session closed."""

    user_id: str
    pad_id: str = ""

    @classmethod
    def from_host(cls, context: Mapping[str, Any]) -> UserDisconnectEvent:
        return cls(
            user_id=_as_str(context.get("userId")),
            pad_id=_as_str(context.get("padId")),
        )
