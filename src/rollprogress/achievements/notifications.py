from __future__ import annotations

import logging
from collections import deque
from dataclasses import dataclass
from typing import Deque, List, Optional

from ..events import EventBus, EventType
from .models import AchievementDef

logger = logging.getLogger(__name__)


@dataclass
class Notification:
    achievement: AchievementDef
    duration: float
    remaining: float


class NotificationQueue:
    """Shows unlock notifications one at a time, in FIFO order.

    Driven by ``tick(dt)`` from the game loop instead of timers: each
    notification stays ``current`` for ``duration`` seconds of loop time, then
    the next pending one is shown.
    """

    def __init__(self, bus: Optional[EventBus] = None, duration: float = 3.0) -> None:
        if duration < 0:
            raise ValueError("Notification duration cannot be negative")
        self.bus = bus
        self.duration = float(duration)
        self._pending: Deque[AchievementDef] = deque()
        self._current: Optional[Notification] = None

    @property
    def current(self) -> Optional[Notification]:
        return self._current

    @property
    def pending(self) -> List[AchievementDef]:
        return list(self._pending)

    def __len__(self) -> int:
        return len(self._pending) + (1 if self._current is not None else 0)

    def enqueue(self, achievement: AchievementDef) -> None:
        if self._current is None:
            self._show(achievement)
        else:
            self._pending.append(achievement)
            logger.debug("Queued notification for %s (%d pending)", achievement.id, len(self._pending))

    def tick(self, dt: float) -> None:
        if self._current is None or dt <= 0:
            return
        self._current.remaining -= dt
        if self._current.remaining <= 0:
            self._advance()

    def dismiss(self) -> None:
        """Cancel the visible notification and immediately show the next one."""
        if self._current is None:
            return
        logger.debug("Notification for %s dismissed", self._current.achievement.id)
        self._advance()

    def clear(self) -> None:
        """Drop everything, including the visible notification."""
        self._pending.clear()
        if self._current is not None:
            hidden = self._current.achievement
            self._current = None
            self._publish(EventType.NOTIFICATION_HIDDEN, hidden)

    def _advance(self) -> None:
        finished = self._current
        self._current = None
        if finished is not None:
            self._publish(EventType.NOTIFICATION_HIDDEN, finished.achievement)
        if self._pending:
            self._show(self._pending.popleft())

    def _show(self, achievement: AchievementDef) -> None:
        self._current = Notification(achievement=achievement, duration=self.duration, remaining=self.duration)
        logger.debug("Showing notification for %s", achievement.id)
        self._publish(EventType.NOTIFICATION_SHOWN, achievement)

    def _publish(self, event_name: str, achievement: AchievementDef) -> None:
        if self.bus is not None:
            self.bus.publish(event_name, achievement)
