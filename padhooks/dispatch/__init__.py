"""Debounced dispatch of pending pad changes.

Submodules:
    debounce    -- Debounce-with-max-wait timer state machine.
    dispatcher  -- Ledger drain plus fire-and-forget webhook fan-out.
"""

from padhooks.dispatch.debounce import Debouncer
from padhooks.dispatch.dispatcher import DeliveryDispatcher, build_payload

__all__ = ["Debouncer", "DeliveryDispatcher", "build_payload"]
