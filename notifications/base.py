"""
NotificationDispatcher — abstract interface for outbound email.

The auth flows only see this interface; tests substitute a recording fake.
"""

from __future__ import annotations

from abc import ABC, abstractmethod


class DispatchError(Exception):
    """Delivery failed (transport error, rejection, misconfiguration)."""


class NotificationDispatcher(ABC):
    @abstractmethod
    async def send(self, to: str, subject: str, html_body: str) -> None:
        """
        Deliver one HTML email.

        Raises ``DispatchError`` if the message could not be handed off.
        """
        ...
