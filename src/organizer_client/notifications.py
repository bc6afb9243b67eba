"""
User-visible notifications (the toasts of the web front end).

Stores report failures here instead of raising into code that nobody awaits.
Each notification is also written to the log.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Callable, Literal

logger = logging.getLogger(__name__)

Level = Literal["info", "error"]


@dataclass(frozen=True)
class Notification:
    level: Level
    title: str
    description: str = ""
    created_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class Notifier:
    """Bounded history of notifications plus subscribers."""

    def __init__(self, history: int = 50):
        self._history: deque[Notification] = deque(maxlen=history)
        self._listeners: list[Callable[[Notification], None]] = []

    @property
    def history(self) -> list[Notification]:
        return list(self._history)

    def subscribe(self, listener: Callable[[Notification], None]) -> Callable[[], None]:
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    def info(self, title: str, description: str = "") -> Notification:
        return self._publish(Notification("info", title, description))

    def error(self, title: str, description: str = "") -> Notification:
        return self._publish(Notification("error", title, description))

    def _publish(self, notification: Notification) -> Notification:
        if notification.level == "error":
            logger.error(f"{notification.title}: {notification.description}")
        else:
            logger.info(f"{notification.title}: {notification.description}")
        self._history.append(notification)
        for listener in list(self._listeners):
            listener(notification)
        return notification

    def clear(self) -> None:
        self._history.clear()
