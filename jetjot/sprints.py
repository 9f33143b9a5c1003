"""
Sprint aggregate store.

A sprint's id is derived from its date range alone, so opening the same
range twice resolves to the same document and `load_or_create` can be
called freely.

Per-day todo operations read the day's list, transform it and write the
whole list back under that one day key. Two writers racing on the same day
can lose an update; the last write wins.
"""

from __future__ import annotations

import logging
from datetime import date
from typing import Callable, List, Optional

from jetjot.db import DocumentStore
from jetjot.errors import SprintNotFound, ValidationFailed
from shared import sprint_types
from shared.sprint_types import Priority, Sprint, Subtask, Todo

logger = logging.getLogger(__name__)


def sprint_id(start: "date | str", end: "date | str") -> str:
    """Compact `YYYYMMDD_YYYYMMDD` id for an inclusive date range."""
    first = sprint_types.parse_day(start)
    last = sprint_types.parse_day(end)
    return f"{first:%Y%m%d}_{last:%Y%m%d}"


def days_field(date_key: str) -> str:
    return f"days.{date_key}"


def validate_text(text: str) -> str:
    cleaned = (text or "").strip()
    if not cleaned:
        raise ValidationFailed("Text must not be empty.")
    return cleaned


def validate_priority(priority: "Priority | str") -> Priority:
    try:
        return Priority(priority)
    except ValueError as exc:
        raise ValidationFailed(f"Unknown priority: {priority}") from exc


def validate_coordinates(lat: float, lng: float) -> None:
    if not -90 <= lat <= 90 or not -180 <= lng <= 180:
        raise ValidationFailed("Coordinates are out of range.")


def require_day(sprint: Sprint, date_key: str) -> None:
    """Day keys are fixed at creation; nothing may be filed under another date."""
    if date_key not in sprint.days:
        raise ValidationFailed(f"{date_key} is not part of sprint {sprint.id}.")


class SprintStore:
    def __init__(self, store: DocumentStore, *, max_days: int = 366):
        self.store = store
        self.max_days = max_days

    # -- aggregate ---------------------------------------------------------

    def get(self, owner: str, sid: str) -> Sprint:
        sprint = self.store.get_sprint(owner, sid)
        if sprint is None:
            raise SprintNotFound()
        return sprint

    def load_or_create(
        self, owner: str, start: "date | str", end: "date | str", name: str = ""
    ) -> Sprint:
        try:
            first = sprint_types.parse_day(start)
            last = sprint_types.parse_day(end)
        except ValueError as exc:
            raise ValidationFailed("Dates must be YYYY-MM-DD.") from exc
        if last < first:
            raise ValidationFailed("The end date must not be before the start date.")
        if (last - first).days + 1 > self.max_days:
            raise ValidationFailed(
                f"A sprint can span at most {self.max_days} days."
            )

        sid = sprint_id(first, last)
        existing = self.store.get_sprint(owner, sid)
        if existing is not None:
            return existing

        sprint = Sprint(
            id=sid,
            owner=owner,
            name=name,
            start_date=sprint_types.day_key(first),
            end_date=sprint_types.day_key(last),
            days=sprint_types.blank_days(first, last),
            travel_log={},
        )
        self.store.create_sprint(sprint)
        logger.info("Created sprint %s for %s", sid, owner)
        return sprint

    def rename(self, owner: str, sid: str, name: str) -> None:
        self.store.update_sprint(owner, sid, {"name": name})

    def list_by_owner(self, owner: str) -> List[Sprint]:
        sprints = self.store.list_sprints(owner)
        return sorted(sprints, key=lambda s: s.created_at, reverse=True)

    def delete(self, owner: str, sid: str) -> None:
        self.store.delete_sprint(owner, sid)

    # -- day buckets -------------------------------------------------------

    def day_todos(self, owner: str, sid: str, date_key: str) -> List[Todo]:
        sprint = self.get(owner, sid)
        require_day(sprint, date_key)
        return sprint.days[date_key]

    def write_day(
        self, owner: str, sid: str, date_key: str, todos: List[Todo]
    ) -> None:
        self.store.update_sprint(
            owner,
            sid,
            {days_field(date_key): sprint_types.todos_to_documents(todos)},
        )

    def _update_day(
        self,
        owner: str,
        sid: str,
        date_key: str,
        change: Callable[[List[Todo]], List[Todo]],
    ) -> List[Todo]:
        todos = change(self.day_todos(owner, sid, date_key))
        self.write_day(owner, sid, date_key, todos)
        return todos

    def add_todo(
        self,
        owner: str,
        sid: str,
        date_key: str,
        text: str,
        priority: "Priority | str" = Priority.MEDIUM,
        time: Optional[str] = None,
        *,
        todo_id: Optional[str] = None,
    ) -> Todo:
        todo = sprint_types.new_todo(
            validate_text(text),
            validate_priority(priority),
            time or None,
            todo_id=todo_id,
        )
        self._update_day(owner, sid, date_key, lambda todos: todos + [todo])
        return todo

    def toggle_todo(self, owner: str, sid: str, date_key: str, todo_id: str) -> List[Todo]:
        return self._update_day(
            owner, sid, date_key, lambda todos: sprint_types.toggle_todo(todos, todo_id)
        )

    def delete_todo(self, owner: str, sid: str, date_key: str, todo_id: str) -> List[Todo]:
        return self._update_day(
            owner, sid, date_key, lambda todos: sprint_types.remove_todo(todos, todo_id)
        )

    def edit_todo_text(
        self, owner: str, sid: str, date_key: str, todo_id: str, text: str
    ) -> List[Todo]:
        cleaned = validate_text(text)
        return self._update_day(
            owner,
            sid,
            date_key,
            lambda todos: sprint_types.edit_todo_text(todos, todo_id, cleaned),
        )

    def reorder_todos(
        self, owner: str, sid: str, date_key: str, ordered: List[Todo]
    ) -> List[Todo]:
        """Persist the given order verbatim; nothing is re-sorted."""
        self.day_todos(owner, sid, date_key)
        self.write_day(owner, sid, date_key, list(ordered))
        return list(ordered)

    # -- subtasks (same whole-day write) -----------------------------------

    def add_subtask(
        self,
        owner: str,
        sid: str,
        date_key: str,
        todo_id: str,
        text: str,
        *,
        subtask_id: Optional[str] = None,
    ) -> List[Todo]:
        cleaned = validate_text(text)
        return self._update_day(
            owner,
            sid,
            date_key,
            lambda todos: sprint_types.add_subtask(
                todos, todo_id, cleaned, subtask_id=subtask_id
            ),
        )

    def toggle_subtask(
        self, owner: str, sid: str, date_key: str, todo_id: str, subtask_id: str
    ) -> List[Todo]:
        return self._update_day(
            owner,
            sid,
            date_key,
            lambda todos: sprint_types.toggle_subtask(todos, todo_id, subtask_id),
        )

    def delete_subtask(
        self, owner: str, sid: str, date_key: str, todo_id: str, subtask_id: str
    ) -> List[Todo]:
        return self._update_day(
            owner,
            sid,
            date_key,
            lambda todos: sprint_types.remove_subtask(todos, todo_id, subtask_id),
        )

    def reorder_subtasks(
        self,
        owner: str,
        sid: str,
        date_key: str,
        todo_id: str,
        ordered: List[Subtask],
    ) -> List[Todo]:
        return self._update_day(
            owner,
            sid,
            date_key,
            lambda todos: sprint_types.reorder_subtasks(todos, todo_id, ordered),
        )
