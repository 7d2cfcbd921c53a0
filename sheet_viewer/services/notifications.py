from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from datetime import UTC, datetime, timedelta
from enum import Enum

logger = logging.getLogger(__name__)

"""Single user-visible notification surface.

At most ``max_visible`` notifications are kept; adding one more evicts the
oldest. Notifications with a positive duration expire on ``prune_expired()``.
"""

__all__ = [
    "NotificationLevel",
    "Notification",
    "NotificationCenter",
]

DEFAULT_DURATION_SECONDS = 5.0


class NotificationLevel(Enum):
    SUCCESS = "success"
    DANGER = "danger"
    WARNING = "warning"
    INFO = "info"


_LOG_LEVELS = {
    NotificationLevel.SUCCESS: logging.INFO,
    NotificationLevel.INFO: logging.INFO,
    NotificationLevel.WARNING: logging.WARNING,
    NotificationLevel.DANGER: logging.ERROR,
}


@dataclass(frozen=True)
class Notification:
    message: str
    level: NotificationLevel
    created_at: datetime
    duration_seconds: float = DEFAULT_DURATION_SECONDS

    def expired(self, now: datetime) -> bool:
        if self.duration_seconds <= 0:
            return False  # 0 以下は手動で閉じるまで残す
        return now >= self.created_at + timedelta(seconds=self.duration_seconds)


class NotificationCenter:
    def __init__(self, max_visible: int = 3) -> None:
        if max_visible < 1:
            raise ValueError(f"max_visible must be positive: {max_visible}")
        self._items: deque[Notification] = deque(maxlen=max_visible)

    @property
    def max_visible(self) -> int:
        return self._items.maxlen or 0

    def notify(
        self,
        message: str,
        level: NotificationLevel = NotificationLevel.INFO,
        duration_seconds: float = DEFAULT_DURATION_SECONDS,
    ) -> Notification:
        item = Notification(
            message=message,
            level=level,
            created_at=datetime.now(UTC),
            duration_seconds=duration_seconds,
        )
        # deque(maxlen) が最古の通知を自動で押し出す
        self._items.append(item)
        logger.log(_LOG_LEVELS[level], message)
        return item

    def success(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.SUCCESS)

    def error(self, message: str) -> Notification:
        return self.notify(message, NotificationLevel.DANGER)

    def items(self) -> list[Notification]:
        return list(self._items)

    def latest(self) -> Notification | None:
        return self._items[-1] if self._items else None

    def dismiss(self, item: Notification) -> None:
        try:
            self._items.remove(item)
        except ValueError:
            pass  # 既に押し出し済み

    def prune_expired(self, now: datetime | None = None) -> int:
        now = now or datetime.now(UTC)
        keep = [n for n in self._items if not n.expired(now)]
        removed = len(self._items) - len(keep)
        self._items.clear()
        self._items.extend(keep)
        return removed

    def clear(self) -> None:
        self._items.clear()

    def __len__(self) -> int:
        return len(self._items)
