"""
Client-side application state and optimistic synchronization.

`SyncEngine` owns the one in-memory sprint of a session. Every mutation
updates that copy immediately and then pushes the matching store call in
the background. A failed push records `error` for display but leaves the
local change in place (the local copy wins for the rest of the session and
only a reload reconciles it), with one exception: a failed completion
toggle is flipped back.

Background writes run one at a time, in the order they were issued, so a
slow early write can never land after a later one.

Mutating methods are plain methods but must be called while an event loop
is running; they return once the local state has changed.
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, replace
from datetime import date, datetime
from typing import Any, Callable, Dict, List, Optional

from jetjot.auth import AuthGate, Session
from jetjot.errors import JetJotError, ValidationFailed
from jetjot.recurring import RecurringTaskManager
from jetjot.reminders import LoggingNotifier, Notifier, ReminderScheduler
from jetjot.sprints import (
    SprintStore,
    require_day,
    validate_coordinates,
    validate_priority,
    validate_text,
)
from jetjot.travel_log import TravelLogStore
from shared import sprint_types
from shared.sprint_types import (
    DayLog,
    Location,
    Priority,
    RecurringBatch,
    Sprint,
    Subtask,
    Todo,
)

logger = logging.getLogger(__name__)

WeatherFetcher = Callable[..., Dict[str, dict]]


@dataclass
class UndoOffer:
    group_id: str
    day_count: int


class SyncEngine:
    def __init__(
        self,
        *,
        auth: AuthGate,
        sprints: SprintStore,
        recurring: RecurringTaskManager,
        travel_log: TravelLogStore,
        notifier: Optional[Notifier] = None,
        weather_fetcher: Optional[WeatherFetcher] = None,
        undo_seconds: float = 6.0,
        reminder_title: str = "JetJot reminder",
        clock: Callable[[], datetime] = datetime.now,
    ):
        self.auth = auth
        self.sprints = sprints
        self.recurring = recurring
        self.travel_log = travel_log
        self.weather_fetcher = weather_fetcher
        self.undo_seconds = undo_seconds
        self.reminders = ReminderScheduler(
            notifier or LoggingNotifier(), title=reminder_title, clock=clock
        )

        self.session: Optional[Session] = None
        self.sprint: Optional[Sprint] = None
        self.error: Optional[str] = None
        self.loading = False
        self.undo: Optional[UndoOffer] = None
        self.weather: Dict[str, dict] = {}

        self._undo_handle: Optional[asyncio.TimerHandle] = None
        self._write_lock = asyncio.Lock()
        self._pending: set[asyncio.Task] = set()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    async def login(self, username: str, password: str) -> Session:
        self.error = None
        try:
            session = await asyncio.to_thread(
                self.auth.login_or_create, username, password
            )
        except JetJotError as exc:
            self.error = exc.message
            raise
        self._reset_state()
        self.session = session
        return session

    def logout(self) -> None:
        self._reset_state()
        self.session = None

    async def close(self) -> None:
        await self.drain()
        self._reset_state()

    async def drain(self) -> None:
        """Wait for every background write issued so far."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)

    def _reset_state(self) -> None:
        self._clear_undo()
        self.reminders.cancel_all()
        self.sprint = None
        self.weather = {}
        self.error = None

    def _owner(self) -> str:
        if self.session is None:
            raise ValidationFailed("Log in first.")
        return self.session.username

    def _current(self) -> Sprint:
        self._owner()
        if self.sprint is None:
            raise ValidationFailed("Open a sprint first.")
        return self.sprint

    def _set_sprint(self, sprint: Optional[Sprint]) -> None:
        previous_id = self.sprint.id if self.sprint else None
        self.sprint = sprint
        current_id = sprint.id if sprint else None
        if current_id != previous_id:
            self._clear_undo()
            self.reminders.reschedule(sprint)

    # ------------------------------------------------------------------
    # Background writes
    # ------------------------------------------------------------------

    def _push(
        self,
        fn: Callable[..., Any],
        *args: Any,
        on_error: Optional[Callable[[], None]] = None,
        **kwargs: Any,
    ) -> asyncio.Task:
        task = asyncio.get_running_loop().create_task(
            self._run_push(fn, args, kwargs, on_error)
        )
        self._track(task)
        return task

    async def _run_push(self, fn, args, kwargs, on_error) -> None:
        async with self._write_lock:
            try:
                await asyncio.to_thread(fn, *args, **kwargs)
            except Exception as exc:
                # Surfaced for display; never retried.
                logger.warning(
                    "Write %s failed: %s", getattr(fn, "__name__", fn), exc
                )
                self.error = str(exc)
                if on_error is not None:
                    on_error()

    # ------------------------------------------------------------------
    # Sprint
    # ------------------------------------------------------------------

    async def open_sprint(
        self, start: "date | str", end: "date | str", name: str = ""
    ) -> Optional[Sprint]:
        owner = self._owner()
        self.loading = True
        self.error = None
        try:
            sprint = await asyncio.to_thread(
                self.sprints.load_or_create, owner, start, end, name
            )
        except JetJotError as exc:
            self.error = exc.message
            return None
        finally:
            self.loading = False
        self._set_sprint(sprint)
        if self.weather_fetcher is not None:
            self._track(asyncio.get_running_loop().create_task(self.refresh_weather()))
        return sprint

    def _track(self, task: asyncio.Task) -> None:
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def refresh_weather(
        self, lat: Optional[float] = None, lng: Optional[float] = None
    ) -> Dict[str, dict]:
        sprint = self.sprint
        if sprint is None or self.weather_fetcher is None:
            return {}
        kwargs = {}
        if lat is not None and lng is not None:
            kwargs = {"lat": lat, "lng": lng}
        try:
            weather = await asyncio.to_thread(
                self.weather_fetcher, sprint.start_date, sprint.end_date, **kwargs
            )
        except Exception as exc:
            # Weather is decoration; a failed lookup just shows nothing.
            logger.warning("Weather lookup failed: %s", exc)
            weather = {}
        if self.sprint is not None and self.sprint.id == sprint.id:
            self.weather = weather
        return weather

    def rename_sprint(self, name: str) -> None:
        sprint = self._current()
        self.sprint = replace(sprint, name=name)
        self._push(self.sprints.rename, sprint.owner, sprint.id, name)

    async def list_sprints(self) -> List[Sprint]:
        owner = self._owner()
        return await asyncio.to_thread(self.sprints.list_by_owner, owner)

    async def delete_sprint(self, sid: str) -> None:
        owner = self._owner()
        if self.sprint is not None and self.sprint.id == sid:
            self._set_sprint(None)
        await self.drain()
        try:
            await asyncio.to_thread(self.sprints.delete, owner, sid)
        except JetJotError as exc:
            self.error = exc.message
            raise

    # ------------------------------------------------------------------
    # Todos
    # ------------------------------------------------------------------

    def _day(self, sprint: Sprint, date_key: str) -> List[Todo]:
        require_day(sprint, date_key)
        return sprint.days[date_key]

    def _replace_day(self, sprint: Sprint, date_key: str, todos: List[Todo]) -> None:
        self.sprint = replace(sprint, days={**sprint.days, date_key: todos})

    def add_todo(
        self,
        date_key: str,
        text: str,
        priority: "Priority | str" = Priority.MEDIUM,
        time: Optional[str] = None,
    ) -> Todo:
        sprint = self._current()
        todos = self._day(sprint, date_key)
        todo = sprint_types.new_todo(
            validate_text(text), validate_priority(priority), time or None
        )
        self._replace_day(sprint, date_key, todos + [todo])
        self._push(
            self.sprints.add_todo,
            sprint.owner,
            sprint.id,
            date_key,
            todo.text,
            todo.priority,
            todo.time,
            todo_id=todo.id,
        )
        return todo

    def toggle_todo(self, date_key: str, todo_id: str) -> None:
        sprint = self._current()
        todos = self._day(sprint, date_key)
        self._replace_day(sprint, date_key, sprint_types.toggle_todo(todos, todo_id))
        self._push(
            self.sprints.toggle_todo,
            sprint.owner,
            sprint.id,
            date_key,
            todo_id,
            on_error=lambda: self._revert_toggle(sprint.id, date_key, todo_id),
        )

    def _revert_toggle(self, sid: str, date_key: str, todo_id: str) -> None:
        current = self.sprint
        if current is None or current.id != sid or date_key not in current.days:
            return
        self._replace_day(
            current, date_key, sprint_types.toggle_todo(current.days[date_key], todo_id)
        )

    def delete_todo(self, date_key: str, todo_id: str) -> None:
        sprint = self._current()
        todos = self._day(sprint, date_key)
        self._replace_day(sprint, date_key, sprint_types.remove_todo(todos, todo_id))
        self._push(self.sprints.delete_todo, sprint.owner, sprint.id, date_key, todo_id)

    def edit_todo(self, date_key: str, todo_id: str, text: str) -> None:
        sprint = self._current()
        todos = self._day(sprint, date_key)
        cleaned = validate_text(text)
        self._replace_day(
            sprint, date_key, sprint_types.edit_todo_text(todos, todo_id, cleaned)
        )
        self._push(
            self.sprints.edit_todo_text, sprint.owner, sprint.id, date_key, todo_id, cleaned
        )

    def reorder_todos(self, date_key: str, ordered: List[Todo]) -> None:
        sprint = self._current()
        self._day(sprint, date_key)
        ordered = list(ordered)
        self._replace_day(sprint, date_key, ordered)
        self._push(self.sprints.reorder_todos, sprint.owner, sprint.id, date_key, ordered)

    # ------------------------------------------------------------------
    # Subtasks
    # ------------------------------------------------------------------

    def add_subtask(self, date_key: str, todo_id: str, text: str) -> Subtask:
        sprint = self._current()
        todos = self._day(sprint, date_key)
        subtask = Subtask(id=sprint_types.new_id(), text=validate_text(text))
        self._replace_day(
            sprint,
            date_key,
            sprint_types.add_subtask(todos, todo_id, subtask.text, subtask_id=subtask.id),
        )
        self._push(
            self.sprints.add_subtask,
            sprint.owner,
            sprint.id,
            date_key,
            todo_id,
            subtask.text,
            subtask_id=subtask.id,
        )
        return subtask

    def toggle_subtask(self, date_key: str, todo_id: str, subtask_id: str) -> None:
        sprint = self._current()
        todos = self._day(sprint, date_key)
        self._replace_day(
            sprint, date_key, sprint_types.toggle_subtask(todos, todo_id, subtask_id)
        )
        self._push(
            self.sprints.toggle_subtask, sprint.owner, sprint.id, date_key, todo_id, subtask_id
        )

    def delete_subtask(self, date_key: str, todo_id: str, subtask_id: str) -> None:
        sprint = self._current()
        todos = self._day(sprint, date_key)
        self._replace_day(
            sprint, date_key, sprint_types.remove_subtask(todos, todo_id, subtask_id)
        )
        self._push(
            self.sprints.delete_subtask, sprint.owner, sprint.id, date_key, todo_id, subtask_id
        )

    def reorder_subtasks(
        self, date_key: str, todo_id: str, ordered: List[Subtask]
    ) -> None:
        sprint = self._current()
        todos = self._day(sprint, date_key)
        ordered = list(ordered)
        self._replace_day(
            sprint, date_key, sprint_types.reorder_subtasks(todos, todo_id, ordered)
        )
        self._push(
            self.sprints.reorder_subtasks, sprint.owner, sprint.id, date_key, todo_id, ordered
        )

    # ------------------------------------------------------------------
    # Recurring todos and undo
    # ------------------------------------------------------------------

    def add_recurring(
        self,
        text: str,
        priority: "Priority | str" = Priority.MEDIUM,
        time: Optional[str] = None,
    ) -> RecurringBatch:
        sprint = self._current()
        batch = sprint_types.fan_out_recurring(
            sprint.days.keys(), validate_text(text), validate_priority(priority), time or None
        )
        self.sprint = replace(
            sprint, days={**sprint.days, **sprint_types.append_batch(sprint.days, batch)}
        )
        self._push(self.recurring.write_batch, sprint.owner, sprint.id, batch)

        # Only the newest batch can be undone.
        self._clear_undo()
        self.undo = UndoOffer(group_id=batch.group_id, day_count=len(batch.todos_by_date))
        self._undo_handle = asyncio.get_running_loop().call_later(
            self.undo_seconds, self._expire_undo
        )
        return batch

    def undo_recurring(self) -> Optional[str]:
        offer = self.undo
        if offer is None or self.sprint is None:
            return None
        self._clear_undo()
        sprint = self.sprint
        self.sprint = replace(
            sprint, days=sprint_types.strip_group(sprint.days, offer.group_id)
        )
        self._push(self.recurring.remove_group, sprint.owner, sprint.id, offer.group_id)
        return offer.group_id

    def dismiss_undo(self) -> None:
        self._clear_undo()

    def _expire_undo(self) -> None:
        self._undo_handle = None
        self.undo = None

    def _clear_undo(self) -> None:
        if self._undo_handle is not None:
            self._undo_handle.cancel()
            self._undo_handle = None
        self.undo = None

    # ------------------------------------------------------------------
    # Reminders
    # ------------------------------------------------------------------

    def enable_reminders(self) -> int:
        self.reminders.enabled = True
        return self.reminders.reschedule(self.sprint)

    # ------------------------------------------------------------------
    # Travel log
    # ------------------------------------------------------------------

    def _replace_travel_log(self, sprint: Sprint, travel_log: Dict[str, DayLog]) -> None:
        self.sprint = replace(sprint, travel_log=travel_log)

    def add_location(
        self, date_key: str, lat: float, lng: float, name: str
    ) -> Location:
        validate_coordinates(lat, lng)
        sprint = self._current()
        self._day(sprint, date_key)
        location = Location(id=sprint_types.new_id(), lat=lat, lng=lng, name=name)
        self._replace_travel_log(
            sprint, sprint_types.with_location(sprint.travel_log, date_key, location)
        )
        self._push(
            self.travel_log.add_location,
            sprint.owner,
            sprint.id,
            date_key,
            lat,
            lng,
            name,
            location_id=location.id,
        )
        return location

    def remove_location(self, date_key: str, location_id: str) -> None:
        sprint = self._current()
        self._day(sprint, date_key)
        self._replace_travel_log(
            sprint, sprint_types.without_location(sprint.travel_log, date_key, location_id)
        )
        self._push(
            self.travel_log.remove_location, sprint.owner, sprint.id, date_key, location_id
        )

    def set_photo(self, date_key: str, photo: Optional[str]) -> None:
        sprint = self._current()
        self._day(sprint, date_key)
        self._replace_travel_log(
            sprint, sprint_types.with_photo(sprint.travel_log, date_key, photo or None)
        )
        self._push(self.travel_log.set_photo, sprint.owner, sprint.id, date_key, photo)

    def route_points(self) -> List[tuple[float, float]]:
        sprint = self._current()
        return sprint_types.route_points(sprint.travel_log, sprint.days.keys())
