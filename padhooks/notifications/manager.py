"""Delivery channel base class.

DeliveryChannel -- ABC every outbound channel implements.  ``send`` reports
                   failure by returning False rather than raising.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class DeliveryChannel(ABC):
    """Abstract base class for all delivery channels."""

    @property
    @abstractmethod
    def channel_name(self) -> str:
        """Human-readable channel identifier used in logs."""

    @property
    @abstractmethod
    def target(self) -> str:
        """Where this channel delivers to (URL for webhooks)."""

    @abstractmethod
    async def send(self, payload: dict[str, object]) -> bool:
        """Deliver *payload* via this channel.

        Returns:
            True  -- payload accepted by the remote endpoint.
            False -- delivery failed (already logged inside implementation).
        """
