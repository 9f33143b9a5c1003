"""
Recurring tasks: one todo fanned out to every day of a sprint.

All members of a batch share a `recurring_group_id`, and both adding and
removing a group go out as a single multi-field write, so no reader ever
sees the group on some days but not others.
"""

from __future__ import annotations

import logging
from typing import Optional

from jetjot.db import DocumentStore
from jetjot.errors import SprintNotFound
from jetjot.sprints import days_field, validate_priority, validate_text
from shared import sprint_types
from shared.sprint_types import Priority, RecurringBatch

logger = logging.getLogger(__name__)


class RecurringTaskManager:
    def __init__(self, store: DocumentStore):
        self.store = store

    def _days(self, owner: str, sid: str):
        sprint = self.store.get_sprint(owner, sid)
        if sprint is None:
            raise SprintNotFound()
        return sprint.days

    def add_recurring(
        self,
        owner: str,
        sid: str,
        text: str,
        priority: "Priority | str" = Priority.MEDIUM,
        time: Optional[str] = None,
    ) -> RecurringBatch:
        days = self._days(owner, sid)
        batch = sprint_types.fan_out_recurring(
            days.keys(), validate_text(text), validate_priority(priority), time or None
        )
        self._write(owner, sid, sprint_types.append_batch(days, batch))
        return batch

    def write_batch(self, owner: str, sid: str, batch: RecurringBatch) -> None:
        """Append a batch built elsewhere (e.g. already applied locally)."""
        days = self._days(owner, sid)
        self._write(owner, sid, sprint_types.append_batch(days, batch))

    def remove_group(self, owner: str, sid: str, group_id: str) -> int:
        """Remove every member of the group; returns how many were removed."""
        days = self._days(owner, sid)
        stripped = sprint_types.strip_group(days, group_id)
        removed = sum(len(days[key]) - len(stripped[key]) for key in days)
        if removed:
            self._write(owner, sid, stripped)
        logger.info("Removed %d todos of group %s from %s", removed, group_id, sid)
        return removed

    def _write(self, owner: str, sid: str, days) -> None:
        updates = {
            days_field(key): sprint_types.todos_to_documents(todos)
            for key, todos in days.items()
        }
        self.store.update_sprint(owner, sid, updates)
