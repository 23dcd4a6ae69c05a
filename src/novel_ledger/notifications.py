"""Short, human-readable notifications for mutations, restores and sync failures."""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable

from .clock import Clock, utc_now

logger = logging.getLogger(__name__)


class NotificationLevel(str, Enum):
    INFO = "info"
    SUCCESS = "success"
    WARNING = "warning"
    ERROR = "error"


_LOG_LEVELS = {
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.ERROR: logging.WARNING,
}


@dataclass
class Notification:
    """A transient message for the user."""

    level: NotificationLevel
    message: str
    created_at: datetime
    count: int = 1  # repeats of the same message coalesce instead of stacking


@dataclass
class NotificationCenter:
    """Keeps the most recent notifications and forwards each one to listeners.

    A notification identical to the newest one bumps its count rather than
    adding a new entry, so a run of sync failures stays a single line.
    """

    history: int = 50
    clock: Clock = utc_now
    _items: deque = field(init=False)
    _listeners: list[Callable[[Notification], None]] = field(default_factory=list, init=False)

    def __post_init__(self) -> None:
        self._items = deque(maxlen=self.history)

    def notify(self, message: str, level: NotificationLevel = NotificationLevel.INFO) -> Notification:
        logger.log(_LOG_LEVELS[level], "%s", message)

        newest = self._items[-1] if self._items else None
        if newest is not None and newest.message == message and newest.level == level:
            newest.count += 1
            newest.created_at = self.clock()
            notification = newest
        else:
            notification = Notification(level=level, message=message, created_at=self.clock())
            self._items.append(notification)

        for listener in self._listeners:
            listener(notification)
        return notification

    def success(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.SUCCESS)

    def error(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.ERROR)

    def subscribe(self, listener: Callable[[Notification], None]) -> None:
        self._listeners.append(listener)

    @property
    def items(self) -> list[Notification]:
        """Notifications, oldest first."""
        return list(self._items)

    def clear(self) -> None:
        self._items.clear()
