"""
Pydantic schemas for the JetJot HTTP API.
"""

from __future__ import annotations

from datetime import date, datetime
from typing import Dict, List, Optional

from pydantic import BaseModel, Field

from shared.sprint_types import DayLog, Priority, Subtask, Todo

TIME_PATTERN = r"^([01]\d|2[0-3]):[0-5]\d$"


class LoginRequest(BaseModel):
    username: str = Field(..., min_length=1, max_length=64)
    password: str = Field(..., min_length=1, max_length=256)


class LoginResponse(BaseModel):
    token: str
    username: str
    is_new: bool
    is_admin: bool


class RateLimitResponse(BaseModel):
    attempts: int
    remaining: int
    resets_at: Optional[datetime] = None


class OpenSprintRequest(BaseModel):
    start_date: date
    end_date: date
    name: str = Field(default="", max_length=200)


class RenameSprintRequest(BaseModel):
    name: str = Field(..., max_length=200)


class SprintSummary(BaseModel):
    id: str
    name: str
    start_date: str
    end_date: str
    created_at: str


class SprintResponse(SprintSummary):
    days: Dict[str, List[Todo]]
    travel_log: Dict[str, DayLog]


class ListSprintsResponse(BaseModel):
    sprints: List[SprintSummary]


class AddTodoRequest(BaseModel):
    text: str = Field(..., max_length=500)
    priority: Priority = Priority.MEDIUM
    time: Optional[str] = Field(default=None, pattern=TIME_PATTERN)


class EditTodoRequest(BaseModel):
    text: str = Field(..., max_length=500)


class ReorderTodosRequest(BaseModel):
    todos: List[Todo]


class DayTodosResponse(BaseModel):
    date: str
    todos: List[Todo]


class AddSubtaskRequest(BaseModel):
    text: str = Field(..., max_length=500)


class ReorderSubtasksRequest(BaseModel):
    subtasks: List[Subtask]


class RecurringResponse(BaseModel):
    group_id: str
    todos_by_date: Dict[str, Todo]


class RemoveGroupResponse(BaseModel):
    group_id: str
    removed: int


class AddLocationRequest(BaseModel):
    lat: float = Field(..., ge=-90, le=90)
    lng: float = Field(..., ge=-180, le=180)
    # Empty name: look the place up from the coordinates.
    name: str = Field(default="", max_length=200)


class SetPhotoRequest(BaseModel):
    photo: Optional[str] = None


class TravelLogResponse(BaseModel):
    travel_log: Dict[str, DayLog]


class RouteResponse(BaseModel):
    points: List[List[float]]
    pin_count: int
    days_with_pins: int


class WeatherResponse(BaseModel):
    weather: Dict[str, dict]


class UserSummaryResponse(BaseModel):
    username: str
    is_admin: bool
    disabled: bool
    created_at: str
    sprint_count: int


class ListUsersResponse(BaseModel):
    users: List[UserSummaryResponse]


class SetFlagRequest(BaseModel):
    value: bool


class DeleteAccountResponse(BaseModel):
    username: str
    deleted_sprints: int


class StatusResponse(BaseModel):
    status: str = "ok"
