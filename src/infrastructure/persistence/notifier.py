"""
infrastructure.persistence.notifier - In-process change notifications.

Repositories publish a ChangeEvent after each committed write; the range
loader (and the insights WebSocket behind it) subscribes to re-fetch the
range on screen.
"""

from __future__ import annotations

import logging

from domain.models import ChangeEvent
from domain.ports import ChangeCallback, Unsubscribe

logger = logging.getLogger(__name__)


class ChangeNotifier:
    """Synchronous fan-out to registered callbacks."""

    def __init__(self) -> None:
        self._subscribers: list[ChangeCallback] = []

    def subscribe(self, callback: ChangeCallback) -> Unsubscribe:
        self._subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers:
                self._subscribers.remove(callback)

        return unsubscribe

    def publish(self, event: ChangeEvent) -> None:
        for callback in list(self._subscribers):
            try:
                callback(event)
            except Exception:
                logger.exception("Change subscriber failed for %s", event)

    @property
    def subscriber_count(self) -> int:
        return len(self._subscribers)
