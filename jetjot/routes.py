"""
HTTP routes for the JetJot API.

Every sprint route is scoped to the caller's own username; the sprint id
in the path is only ever looked up under that owner.
"""

from __future__ import annotations

import logging
from typing import Callable, Optional

from fastapi import APIRouter, Depends, File, Header, HTTPException, Query, UploadFile

from integrations.image_utils import compress_image
from jetjot.admin import AccountAdmin
from jetjot.auth import AuthGate, Session
from jetjot.dependencies import (
    get_account_admin,
    get_auth_gate,
    get_geocoder,
    get_login_guard,
    get_recurring_manager,
    get_sprint_store,
    get_token_registry,
    get_travel_log_store,
    get_weather_fetcher,
)
from jetjot.errors import ValidationFailed
from jetjot.ratelimit import LoginRateGuard
from jetjot.recurring import RecurringTaskManager
from jetjot.schemas import (
    AddLocationRequest,
    AddSubtaskRequest,
    AddTodoRequest,
    DayTodosResponse,
    DeleteAccountResponse,
    EditTodoRequest,
    ListSprintsResponse,
    ListUsersResponse,
    LoginRequest,
    LoginResponse,
    OpenSprintRequest,
    RateLimitResponse,
    RecurringResponse,
    RemoveGroupResponse,
    RenameSprintRequest,
    ReorderSubtasksRequest,
    ReorderTodosRequest,
    RouteResponse,
    SetFlagRequest,
    SetPhotoRequest,
    SprintResponse,
    SprintSummary,
    StatusResponse,
    TravelLogResponse,
    UserSummaryResponse,
    WeatherResponse,
)
from jetjot.sprints import SprintStore
from jetjot.tokens import TokenRegistry
from jetjot.travel_log import TravelLogStore
from shared import sprint_types
from shared.sprint_types import Sprint, Todo

logger = logging.getLogger(__name__)

router = APIRouter()

MAX_PHOTO_UPLOAD_BYTES = 20 * 1024 * 1024


def _bearer_token(authorization: Optional[str]) -> str:
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(
            status_code=401,
            detail="Authorization header with Bearer token is required",
        )
    return authorization[7:]


def current_session(
    authorization: Optional[str] = Header(None),
    tokens: TokenRegistry = Depends(get_token_registry),
) -> Session:
    session = tokens.resolve(_bearer_token(authorization))
    if session is None:
        raise HTTPException(status_code=401, detail="Invalid or expired token")
    return session


def admin_session(
    session: Session = Depends(current_session),
    admin: AccountAdmin = Depends(get_account_admin),
) -> Session:
    # Re-read the flag so a revoked grant takes effect immediately.
    if not admin.is_admin(session.username):
        raise HTTPException(status_code=403, detail="Administrator access required")
    return session


def _summary(sprint: Sprint) -> SprintSummary:
    return SprintSummary(
        id=sprint.id,
        name=sprint.name,
        start_date=sprint.start_date,
        end_date=sprint.end_date,
        created_at=sprint.created_at,
    )


def _sprint_response(sprint: Sprint) -> SprintResponse:
    return SprintResponse(
        id=sprint.id,
        name=sprint.name,
        start_date=sprint.start_date,
        end_date=sprint.end_date,
        created_at=sprint.created_at,
        days=sprint.days,
        travel_log=sprint.travel_log,
    )


def _day(date: str, todos: list[Todo]) -> DayTodosResponse:
    return DayTodosResponse(date=date, todos=todos)


# ---------------------------------------------------------------------------
# Auth
# ---------------------------------------------------------------------------


@router.post("/login", response_model=LoginResponse)
def login(
    payload: LoginRequest,
    gate: AuthGate = Depends(get_auth_gate),
    tokens: TokenRegistry = Depends(get_token_registry),
):
    session = gate.login_or_create(payload.username, payload.password)
    return LoginResponse(
        token=tokens.issue(session),
        username=session.username,
        is_new=session.is_new,
        is_admin=session.is_admin,
    )


@router.post("/logout", response_model=StatusResponse)
def logout(
    authorization: Optional[str] = Header(None),
    tokens: TokenRegistry = Depends(get_token_registry),
):
    tokens.revoke(_bearer_token(authorization))
    return StatusResponse()


@router.get("/rate-limit/{username}", response_model=RateLimitResponse)
def rate_limit_status(
    username: str, guard: LoginRateGuard = Depends(get_login_guard)
):
    status = guard.status(username.strip().lower())
    return RateLimitResponse(
        attempts=status.attempts,
        remaining=status.remaining,
        resets_at=status.resets_at,
    )


# ---------------------------------------------------------------------------
# Sprints
# ---------------------------------------------------------------------------


@router.get("/sprints", response_model=ListSprintsResponse)
def list_sprints(
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    return ListSprintsResponse(
        sprints=[_summary(s) for s in sprints.list_by_owner(session.username)]
    )


@router.post("/sprints", response_model=SprintResponse)
def open_sprint(
    payload: OpenSprintRequest,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    sprint = sprints.load_or_create(
        session.username, payload.start_date, payload.end_date, payload.name
    )
    return _sprint_response(sprint)


@router.get("/sprints/{sprint_id}", response_model=SprintResponse)
def get_sprint(
    sprint_id: str,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    return _sprint_response(sprints.get(session.username, sprint_id))


@router.patch("/sprints/{sprint_id}", response_model=StatusResponse)
def rename_sprint(
    sprint_id: str,
    payload: RenameSprintRequest,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    sprints.rename(session.username, sprint_id, payload.name)
    return StatusResponse()


@router.delete("/sprints/{sprint_id}", response_model=StatusResponse)
def delete_sprint(
    sprint_id: str,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    sprints.delete(session.username, sprint_id)
    return StatusResponse()


# ---------------------------------------------------------------------------
# Todos and subtasks
# ---------------------------------------------------------------------------


@router.post("/sprints/{sprint_id}/days/{date}/todos", response_model=Todo)
def add_todo(
    sprint_id: str,
    date: str,
    payload: AddTodoRequest,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    return sprints.add_todo(
        session.username, sprint_id, date, payload.text, payload.priority, payload.time
    )


@router.put("/sprints/{sprint_id}/days/{date}/todos", response_model=DayTodosResponse)
def reorder_todos(
    sprint_id: str,
    date: str,
    payload: ReorderTodosRequest,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    todos = sprints.reorder_todos(session.username, sprint_id, date, payload.todos)
    return _day(date, todos)


@router.patch(
    "/sprints/{sprint_id}/days/{date}/todos/{todo_id}", response_model=DayTodosResponse
)
def edit_todo(
    sprint_id: str,
    date: str,
    todo_id: str,
    payload: EditTodoRequest,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    todos = sprints.edit_todo_text(
        session.username, sprint_id, date, todo_id, payload.text
    )
    return _day(date, todos)


@router.post(
    "/sprints/{sprint_id}/days/{date}/todos/{todo_id}/toggle",
    response_model=DayTodosResponse,
)
def toggle_todo(
    sprint_id: str,
    date: str,
    todo_id: str,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    return _day(date, sprints.toggle_todo(session.username, sprint_id, date, todo_id))


@router.delete(
    "/sprints/{sprint_id}/days/{date}/todos/{todo_id}", response_model=DayTodosResponse
)
def delete_todo(
    sprint_id: str,
    date: str,
    todo_id: str,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    return _day(date, sprints.delete_todo(session.username, sprint_id, date, todo_id))


@router.post(
    "/sprints/{sprint_id}/days/{date}/todos/{todo_id}/subtasks",
    response_model=DayTodosResponse,
)
def add_subtask(
    sprint_id: str,
    date: str,
    todo_id: str,
    payload: AddSubtaskRequest,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    todos = sprints.add_subtask(
        session.username, sprint_id, date, todo_id, payload.text
    )
    return _day(date, todos)


@router.put(
    "/sprints/{sprint_id}/days/{date}/todos/{todo_id}/subtasks",
    response_model=DayTodosResponse,
)
def reorder_subtasks(
    sprint_id: str,
    date: str,
    todo_id: str,
    payload: ReorderSubtasksRequest,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    todos = sprints.reorder_subtasks(
        session.username, sprint_id, date, todo_id, payload.subtasks
    )
    return _day(date, todos)


@router.post(
    "/sprints/{sprint_id}/days/{date}/todos/{todo_id}/subtasks/{subtask_id}/toggle",
    response_model=DayTodosResponse,
)
def toggle_subtask(
    sprint_id: str,
    date: str,
    todo_id: str,
    subtask_id: str,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    todos = sprints.toggle_subtask(
        session.username, sprint_id, date, todo_id, subtask_id
    )
    return _day(date, todos)


@router.delete(
    "/sprints/{sprint_id}/days/{date}/todos/{todo_id}/subtasks/{subtask_id}",
    response_model=DayTodosResponse,
)
def delete_subtask(
    sprint_id: str,
    date: str,
    todo_id: str,
    subtask_id: str,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    todos = sprints.delete_subtask(
        session.username, sprint_id, date, todo_id, subtask_id
    )
    return _day(date, todos)


# ---------------------------------------------------------------------------
# Recurring groups
# ---------------------------------------------------------------------------


@router.post("/sprints/{sprint_id}/recurring", response_model=RecurringResponse)
def add_recurring(
    sprint_id: str,
    payload: AddTodoRequest,
    session: Session = Depends(current_session),
    manager: RecurringTaskManager = Depends(get_recurring_manager),
):
    batch = manager.add_recurring(
        session.username, sprint_id, payload.text, payload.priority, payload.time
    )
    return RecurringResponse(group_id=batch.group_id, todos_by_date=batch.todos_by_date)


@router.delete(
    "/sprints/{sprint_id}/recurring/{group_id}", response_model=RemoveGroupResponse
)
def remove_recurring_group(
    sprint_id: str,
    group_id: str,
    session: Session = Depends(current_session),
    manager: RecurringTaskManager = Depends(get_recurring_manager),
):
    removed = manager.remove_group(session.username, sprint_id, group_id)
    return RemoveGroupResponse(group_id=group_id, removed=removed)


# ---------------------------------------------------------------------------
# Travel log
# ---------------------------------------------------------------------------


@router.get("/sprints/{sprint_id}/travel-log", response_model=TravelLogResponse)
def get_travel_log(
    sprint_id: str,
    session: Session = Depends(current_session),
    travel: TravelLogStore = Depends(get_travel_log_store),
):
    return TravelLogResponse(travel_log=travel.get(session.username, sprint_id))


@router.post(
    "/sprints/{sprint_id}/travel-log/{date}/locations",
    response_model=TravelLogResponse,
)
def add_location(
    sprint_id: str,
    date: str,
    payload: AddLocationRequest,
    session: Session = Depends(current_session),
    travel: TravelLogStore = Depends(get_travel_log_store),
    geocoder: Callable[[float, float], str] = Depends(get_geocoder),
):
    name = payload.name.strip()
    if not name:
        if payload.lat == 0 and payload.lng == 0:
            raise ValidationFailed("A manually entered place needs a name.")
        name = geocoder(payload.lat, payload.lng)
    travel_log = travel.add_location(
        session.username, sprint_id, date, payload.lat, payload.lng, name
    )
    return TravelLogResponse(travel_log=travel_log)


@router.delete(
    "/sprints/{sprint_id}/travel-log/{date}/locations/{location_id}",
    response_model=TravelLogResponse,
)
def remove_location(
    sprint_id: str,
    date: str,
    location_id: str,
    session: Session = Depends(current_session),
    travel: TravelLogStore = Depends(get_travel_log_store),
):
    travel_log = travel.remove_location(session.username, sprint_id, date, location_id)
    return TravelLogResponse(travel_log=travel_log)


@router.put(
    "/sprints/{sprint_id}/travel-log/{date}/photo", response_model=TravelLogResponse
)
def set_photo(
    sprint_id: str,
    date: str,
    payload: SetPhotoRequest,
    session: Session = Depends(current_session),
    travel: TravelLogStore = Depends(get_travel_log_store),
):
    travel_log = travel.set_photo(session.username, sprint_id, date, payload.photo)
    return TravelLogResponse(travel_log=travel_log)


@router.post(
    "/sprints/{sprint_id}/travel-log/{date}/photo", response_model=TravelLogResponse
)
async def upload_photo(
    sprint_id: str,
    date: str,
    file: UploadFile = File(...),
    session: Session = Depends(current_session),
    travel: TravelLogStore = Depends(get_travel_log_store),
):
    raw = await file.read()
    if len(raw) > MAX_PHOTO_UPLOAD_BYTES:
        raise HTTPException(status_code=413, detail="Photo is too large")
    try:
        encoded = compress_image(raw)
    except ValueError as exc:
        raise ValidationFailed("The uploaded file is not an image.") from exc
    travel_log = travel.set_photo(session.username, sprint_id, date, encoded)
    return TravelLogResponse(travel_log=travel_log)


@router.get("/sprints/{sprint_id}/route", response_model=RouteResponse)
def get_route(
    sprint_id: str,
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
):
    sprint = sprints.get(session.username, sprint_id)
    day_keys = list(sprint.days.keys())
    pins = sprint_types.pinned_locations(sprint.travel_log, day_keys)
    points = sprint_types.route_points(sprint.travel_log, day_keys)
    return RouteResponse(
        points=[[lat, lng] for lat, lng in points],
        pin_count=len(pins),
        days_with_pins=len(points),
    )


@router.get("/sprints/{sprint_id}/weather", response_model=WeatherResponse)
def get_weather(
    sprint_id: str,
    lat: Optional[float] = Query(None, ge=-90, le=90),
    lng: Optional[float] = Query(None, ge=-180, le=180),
    session: Session = Depends(current_session),
    sprints: SprintStore = Depends(get_sprint_store),
    fetch_weather: Callable[..., dict] = Depends(get_weather_fetcher),
):
    sprint = sprints.get(session.username, sprint_id)
    coords = {"lat": lat, "lng": lng} if lat is not None and lng is not None else {}
    return WeatherResponse(
        weather=fetch_weather(sprint.start_date, sprint.end_date, **coords)
    )


# ---------------------------------------------------------------------------
# Administration
# ---------------------------------------------------------------------------


@router.get("/admin/users", response_model=ListUsersResponse)
def list_users(
    _session: Session = Depends(admin_session),
    admin: AccountAdmin = Depends(get_account_admin),
):
    return ListUsersResponse(
        users=[
            UserSummaryResponse(**vars(user)) for user in admin.list_users()
        ]
    )


@router.post("/admin/users/{username}/disabled", response_model=StatusResponse)
def set_user_disabled(
    username: str,
    payload: SetFlagRequest,
    _session: Session = Depends(admin_session),
    admin: AccountAdmin = Depends(get_account_admin),
    tokens: TokenRegistry = Depends(get_token_registry),
):
    admin.set_disabled(username, payload.value)
    if payload.value:
        tokens.revoke_user(username.strip().lower())
    return StatusResponse()


@router.post("/admin/users/{username}/admin", response_model=StatusResponse)
def set_user_admin(
    username: str,
    payload: SetFlagRequest,
    _session: Session = Depends(admin_session),
    admin: AccountAdmin = Depends(get_account_admin),
):
    admin.set_admin(username, payload.value)
    return StatusResponse()


@router.delete("/admin/users/{username}", response_model=DeleteAccountResponse)
def delete_user(
    username: str,
    _session: Session = Depends(admin_session),
    admin: AccountAdmin = Depends(get_account_admin),
    tokens: TokenRegistry = Depends(get_token_registry),
):
    key = username.strip().lower()
    deleted = admin.delete_account(key)
    tokens.revoke_user(key)
    return DeleteAccountResponse(username=key, deleted_sprints=deleted)
