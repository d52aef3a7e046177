"""
Notification sinks for queue events.
"""

import logging
import threading
from typing import List

from .models import Notification

logger = logging.getLogger(__name__)


class LoggingNotifier:
    """Writes notifications to the log."""

    def notify(self, notification: Notification) -> None:
        level = logging.ERROR if notification.type == "error" else logging.INFO
        logger.log(level, f"[{notification.type}] {notification.title}: {notification.message}")


class CollectingNotifier(LoggingNotifier):
    """Keeps notifications in memory so the HTTP API can serve them."""

    def __init__(self, max_items: int = 200, log: bool = True):
        self.max_items = max_items
        self.log = log
        self._items: List[Notification] = []
        self._lock = threading.Lock()

    def notify(self, notification: Notification) -> None:
        if self.log:
            super().notify(notification)
        with self._lock:
            self._items.append(notification)
            del self._items[: -self.max_items]

    @property
    def notifications(self) -> List[Notification]:
        with self._lock:
            return list(self._items)

    def clear(self) -> None:
        with self._lock:
            self._items.clear()
