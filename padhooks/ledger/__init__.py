"""Change Ledger for padhooks.

Holds, per pad, the pending change record of every user who edited it since
the last flush.  The debounced dispatcher drains it; nothing else reads it.

Submodules:
    change_ledger   -- In-memory pad -> [ChangeRecord] mapping with drain.
"""

from padhooks.ledger.change_ledger import ChangeLedger

__all__ = ["ChangeLedger"]
