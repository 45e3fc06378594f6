"""
Role-change notifications.

The identity store publishes a ``RoleChanged`` event whenever the active
session pointer is written or cleared. Subscribers run synchronously, in
subscription order, before the mutating call returns.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class RoleChanged:
    """The active identity changed. Both fields are None after disconnect."""

    network: str
    role: str | None
    address: str | None


Subscriber = Callable[[RoleChanged], None]


class EventBus:
    """In-process publish/subscribe for ``RoleChanged``."""

    def __init__(self) -> None:
        self._subscribers: list[Subscriber] = []

    def subscribe(self, callback: Subscriber) -> Callable[[], None]:
        """Register ``callback``. Returns a function that unsubscribes it."""
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: RoleChanged) -> None:
        # A failing subscriber must not stop the others from hearing the change.
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("role-change subscriber %r failed", callback)

    def __len__(self) -> int:
        return len(self._subscribers)
