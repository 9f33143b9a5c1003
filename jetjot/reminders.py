"""
Reminder timers for timed todos.

The scheduler only works out when each reminder fires and what it says;
delivery is left to a `Notifier`.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime, time
from typing import Callable, List, Optional, Protocol

from shared.sprint_types import Sprint, parse_day

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    def notify(self, title: str, body: str) -> None:
        ...


class LoggingNotifier:
    """Default notifier: writes reminders to the log."""

    def notify(self, title: str, body: str) -> None:
        logger.info("%s: %s", title, body)


@dataclass
class Reminder:
    date_key: str
    todo_id: str
    body: str
    fire_at: datetime


def parse_time_of_day(value: str) -> Optional[time]:
    try:
        hours, minutes = (int(part) for part in value.split(":")[:2])
        return time(hour=hours, minute=minutes)
    except (TypeError, ValueError):
        return None


def pending_reminders(sprint: Sprint, now: datetime) -> List[Reminder]:
    """Incomplete todos with a time of day that is still in the future."""
    reminders: List[Reminder] = []
    for date_key, todos in sprint.days.items():
        for todo in todos:
            if not todo.time or todo.completed:
                continue
            at = parse_time_of_day(todo.time)
            if at is None:
                logger.warning("Ignoring unparseable time %r on %s", todo.time, todo.id)
                continue
            fire_at = datetime.combine(parse_day(date_key), at)
            if fire_at <= now:
                continue
            reminders.append(
                Reminder(date_key=date_key, todo_id=todo.id, body=todo.text, fire_at=fire_at)
            )
    return reminders


class ReminderScheduler:
    """
    Holds one loop timer per pending reminder.

    Scheduling is off until `enabled` is set, the analogue of the user
    granting notification permission.
    """

    def __init__(
        self,
        notifier: Notifier,
        *,
        title: str = "JetJot reminder",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.notifier = notifier
        self.title = title
        self.clock = clock
        self.enabled = False
        self._handles: List[asyncio.TimerHandle] = []

    @property
    def pending(self) -> int:
        return len(self._handles)

    def cancel_all(self) -> None:
        for handle in self._handles:
            handle.cancel()
        self._handles = []

    def reschedule(self, sprint: Optional[Sprint]) -> int:
        self.cancel_all()
        if not self.enabled or sprint is None:
            return 0
        loop = asyncio.get_running_loop()
        now = self.clock()
        for reminder in pending_reminders(sprint, now):
            delay = (reminder.fire_at - now).total_seconds()
            self._handles.append(
                loop.call_later(delay, self.notifier.notify, self.title, reminder.body)
            )
        return len(self._handles)
