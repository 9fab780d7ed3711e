"""In-memory ledger of pending per-user pad changes."""

from __future__ import annotations

import structlog

from padhooks.models.changes import ChangeRecord
from padhooks.observability.metrics import dropped_events_total

_log = structlog.get_logger(component="ledger")

PendingChanges = dict[str, list[ChangeRecord]]


class ChangeLedger:
    """Pending change records keyed by pad id.

    At most one record exists per ``(pad_id, user_id)``; a newer change from
    the same user replaces the older one and moves it to the end of the pad's
    list.

    All methods are synchronous and meant to be called from the event loop
    thread only, so call order is the only ordering guarantee needed.
    """

    def __init__(self) -> None:
        self._pending: PendingChanges = {}

    def __len__(self) -> int:
        return sum(len(records) for records in self._pending.values())

    def __bool__(self) -> bool:
        return bool(self._pending)

    def pending_for(self, pad_id: str) -> list[ChangeRecord]:
        """Return a copy of the records pending for *pad_id*."""
        return list(self._pending.get(pad_id, ()))

    def record_change(
        self,
        pad_id: str,
        user_id: str,
        revision: int,
        client_ip: str,
        author_id: str | None = None,
    ) -> bool:
        """Record that *user_id* changed *pad_id*.

        Returns False (and records nothing) when the pad or user identity is
        missing.
        """
        if not pad_id:
            _log.warning("change_dropped", reason="missing pad id", user_id=user_id or None)
            dropped_events_total.labels(reason="missing_pad_id").inc()
            return False
        if not user_id:
            _log.warning("change_dropped", reason="missing user id", pad_id=pad_id)
            dropped_events_total.labels(reason="missing_user_id").inc()
            return False

        records = self._pending.setdefault(pad_id, [])
        records[:] = [r for r in records if r.user_id != user_id]
        records.append(
            ChangeRecord(
                user_id=user_id,
                revision=revision,
                client_ip=client_ip,
                author_id=author_id or user_id,
            )
        )
        _log.debug("change_recorded", pad_id=pad_id, user_id=user_id, revision=revision)
        return True

    def confirm_revision(self, pad_id: str, author_id: str, head_revision: int) -> int:
        """Set ``revision`` to *head_revision* on every record of *pad_id* by *author_id*.

        Never creates records.  Returns the number of records updated.
        """
        updated = 0
        for record in self._pending.get(pad_id, ()):
            if record.author_id == author_id:
                record.revision = head_revision
                updated += 1
        if updated:
            _log.debug(
                "revision_confirmed",
                pad_id=pad_id,
                author_id=author_id,
                revision=head_revision,
                records=updated,
            )
        return updated

    def drain(self) -> PendingChanges:
        """Return everything pending and start over with an empty ledger."""
        drained, self._pending = self._pending, {}
        return drained
