# Copyright 2025 Google LLC
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.
# ==============================================================================


"""Domain types for sprints, their day buckets and the travel log.

Everything here is a plain dataclass plus pure functions over them. The
stores in `jetjot` and the client-side sync engine both call these so that
the optimistic local state and the persisted document are produced by the
same transformation.
"""

import uuid
from dataclasses import asdict, dataclass, field, replace
from datetime import date, datetime, timedelta, timezone
from enum import StrEnum
from typing import Dict, Iterable, List, Optional

from dacite import Config, from_dict

from shared.json_utils import convert_keys

DAY_KEY_FORMAT = "%Y-%m-%d"


class Priority(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


_DACITE_CONFIG = Config(cast=[Priority], check_types=False)


def utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def new_id() -> str:
    return str(uuid.uuid4())


def parse_day(value: "date | str") -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    return datetime.strptime(value[:10], DAY_KEY_FORMAT).date()


def day_key(value: "date | str") -> str:
    return parse_day(value).strftime(DAY_KEY_FORMAT)


@dataclass
class Subtask:
    id: str
    text: str
    completed: bool = False


@dataclass
class Todo:
    id: str
    text: str
    priority: Priority = Priority.MEDIUM
    time: Optional[str] = None  # "HH:MM", local time of day
    completed: bool = False
    recurring: bool = False
    recurring_group_id: Optional[str] = None
    subtasks: List[Subtask] = field(default_factory=list)
    created_at: str = field(default_factory=utc_now_iso)


@dataclass
class Location:
    id: str
    lat: float
    lng: float
    name: str
    added_at: str = field(default_factory=utc_now_iso)

    @property
    def has_coordinates(self) -> bool:
        # (0, 0) marks a manually named place with no coordinates.
        return self.lat != 0 or self.lng != 0


@dataclass
class DayLog:
    locations: List[Location] = field(default_factory=list)
    photo: Optional[str] = None


@dataclass
class Sprint:
    id: str
    owner: str
    name: str
    start_date: str
    end_date: str
    days: Dict[str, List[Todo]] = field(default_factory=dict)
    travel_log: Dict[str, DayLog] = field(default_factory=dict)
    created_at: str = field(default_factory=utc_now_iso)

    def to_document(self) -> dict:
        """Stored shape: camelCase keys, no id (the id is the document key)."""
        payload = convert_keys(asdict(self), "snake_to_camel")
        payload.pop("id", None)
        return payload

    @classmethod
    def from_document(cls, sprint_id: str, document: dict) -> "Sprint":
        data = convert_keys(document, "camel_to_snake")
        data["id"] = sprint_id
        return from_dict(data_class=cls, data=data, config=_DACITE_CONFIG)


@dataclass
class Credential:
    username: str
    password_hash: str
    is_admin: bool = False
    disabled: bool = False
    created_at: str = field(default_factory=utc_now_iso)

    def to_document(self) -> dict:
        payload = convert_keys(asdict(self), "snake_to_camel")
        payload.pop("username", None)
        return payload

    @classmethod
    def from_document(cls, username: str, document: dict) -> "Credential":
        data = convert_keys(document, "camel_to_snake")
        data["username"] = username
        return from_dict(data_class=cls, data=data, config=_DACITE_CONFIG)


@dataclass
class RecurringBatch:
    """Todos created together across every day bucket of a sprint."""

    group_id: str
    todos_by_date: Dict[str, Todo]


def todos_to_documents(todos: Iterable[Todo]) -> list[dict]:
    return [convert_keys(asdict(todo), "snake_to_camel") for todo in todos]


def day_log_to_document(day_log: DayLog) -> dict:
    return convert_keys(asdict(day_log), "snake_to_camel")


# ---------------------------------------------------------------------------
# Day buckets
# ---------------------------------------------------------------------------


def blank_days(start: "date | str", end: "date | str") -> Dict[str, List[Todo]]:
    """One empty bucket per calendar day, both endpoints included."""
    first, last = parse_day(start), parse_day(end)
    span = (last - first).days
    return {
        (first + timedelta(days=offset)).strftime(DAY_KEY_FORMAT): []
        for offset in range(span + 1)
    }


def new_todo(
    text: str,
    priority: "Priority | str" = Priority.MEDIUM,
    time: Optional[str] = None,
    *,
    todo_id: Optional[str] = None,
    recurring_group_id: Optional[str] = None,
) -> Todo:
    return Todo(
        id=todo_id or new_id(),
        text=text,
        priority=Priority(priority),
        time=time,
        recurring=recurring_group_id is not None,
        recurring_group_id=recurring_group_id,
    )


def toggle_todo(todos: List[Todo], todo_id: str) -> List[Todo]:
    return [
        replace(todo, completed=not todo.completed) if todo.id == todo_id else todo
        for todo in todos
    ]


def remove_todo(todos: List[Todo], todo_id: str) -> List[Todo]:
    return [todo for todo in todos if todo.id != todo_id]


def edit_todo_text(todos: List[Todo], todo_id: str, text: str) -> List[Todo]:
    return [
        replace(todo, text=text) if todo.id == todo_id else todo for todo in todos
    ]


def _map_subtasks(todos: List[Todo], todo_id: str, change) -> List[Todo]:
    return [
        replace(todo, subtasks=change(list(todo.subtasks)))
        if todo.id == todo_id
        else todo
        for todo in todos
    ]


def add_subtask(
    todos: List[Todo], todo_id: str, text: str, *, subtask_id: Optional[str] = None
) -> List[Todo]:
    subtask = Subtask(id=subtask_id or new_id(), text=text)
    return _map_subtasks(todos, todo_id, lambda subtasks: subtasks + [subtask])


def toggle_subtask(todos: List[Todo], todo_id: str, subtask_id: str) -> List[Todo]:
    return _map_subtasks(
        todos,
        todo_id,
        lambda subtasks: [
            replace(s, completed=not s.completed) if s.id == subtask_id else s
            for s in subtasks
        ],
    )


def remove_subtask(todos: List[Todo], todo_id: str, subtask_id: str) -> List[Todo]:
    return _map_subtasks(
        todos, todo_id, lambda subtasks: [s for s in subtasks if s.id != subtask_id]
    )


def reorder_subtasks(
    todos: List[Todo], todo_id: str, ordered: List[Subtask]
) -> List[Todo]:
    return _map_subtasks(todos, todo_id, lambda _subtasks: list(ordered))


# ---------------------------------------------------------------------------
# Recurring groups
# ---------------------------------------------------------------------------


def fan_out_recurring(
    day_keys: Iterable[str],
    text: str,
    priority: "Priority | str" = Priority.MEDIUM,
    time: Optional[str] = None,
) -> RecurringBatch:
    group_id = new_id()
    todos_by_date = {
        key: new_todo(text, priority, time, recurring_group_id=group_id)
        for key in day_keys
    }
    return RecurringBatch(group_id=group_id, todos_by_date=todos_by_date)


def append_batch(
    days: Dict[str, List[Todo]], batch: RecurringBatch
) -> Dict[str, List[Todo]]:
    """Updated buckets for every day the batch touches."""
    return {
        key: list(days.get(key) or []) + [todo]
        for key, todo in batch.todos_by_date.items()
    }


def strip_group(
    days: Dict[str, List[Todo]], group_id: str
) -> Dict[str, List[Todo]]:
    return {
        key: [todo for todo in todos if todo.recurring_group_id != group_id]
        for key, todos in days.items()
    }


# ---------------------------------------------------------------------------
# Travel log
# ---------------------------------------------------------------------------


def with_location(
    travel_log: Dict[str, DayLog], date_key: str, location: Location
) -> Dict[str, DayLog]:
    day_log = travel_log.get(date_key) or DayLog()
    updated = replace(day_log, locations=list(day_log.locations) + [location])
    return {**travel_log, date_key: updated}


def without_location(
    travel_log: Dict[str, DayLog], date_key: str, location_id: str
) -> Dict[str, DayLog]:
    day_log = travel_log.get(date_key) or DayLog()
    updated = replace(
        day_log,
        locations=[loc for loc in day_log.locations if loc.id != location_id],
    )
    return {**travel_log, date_key: updated}


def with_photo(
    travel_log: Dict[str, DayLog], date_key: str, photo: Optional[str]
) -> Dict[str, DayLog]:
    day_log = travel_log.get(date_key) or DayLog()
    return {**travel_log, date_key: replace(day_log, photo=photo)}


def pinned_locations(
    travel_log: Dict[str, DayLog], day_keys: Iterable[str]
) -> List[Location]:
    """Every location with real coordinates, in day then insertion order."""
    pins: List[Location] = []
    for key in day_keys:
        day_log = travel_log.get(key)
        if not day_log:
            continue
        pins.extend(loc for loc in day_log.locations if loc.has_coordinates)
    return pins


def route_points(
    travel_log: Dict[str, DayLog], day_keys: Iterable[str]
) -> List[tuple[float, float]]:
    """The first pinned location of each day, joined in date order."""
    points: List[tuple[float, float]] = []
    for key in day_keys:
        day_log = travel_log.get(key)
        if not day_log:
            continue
        first = next((loc for loc in day_log.locations if loc.has_coordinates), None)
        if first is not None:
            points.append((first.lat, first.lng))
    return points
