"""
Dependency wiring for the FastAPI app and the sync engine.
"""

from __future__ import annotations

from functools import partial

from jetjot.admin import AccountAdmin
from jetjot.auth import AuthGate
from jetjot.config import get_settings
from jetjot.db import DocumentStore, InMemoryDocumentStore, SqlDocumentStore
from jetjot.ratelimit import (
    InMemoryWindowStore,
    LoginRateGuard,
    RedisWindowStore,
    WindowStore,
    build_login_guard,
)
from jetjot.recurring import RecurringTaskManager
from jetjot.reminders import Notifier
from jetjot.sprints import SprintStore
from jetjot.sync import SyncEngine, WeatherFetcher
from jetjot.tokens import TokenRegistry
from jetjot.travel_log import TravelLogStore
from integrations import geocode, weather

_document_store: DocumentStore | None = None
_window_store: WindowStore | None = None
_token_registry: TokenRegistry | None = None
_auth_gate: AuthGate | None = None


def get_document_store() -> DocumentStore:
    """
    Return a singleton document store so state persists across requests.
    """
    global _document_store
    if _document_store:
        return _document_store

    settings = get_settings()
    if settings.use_in_memory_backends or not settings.database_url:
        _document_store = InMemoryDocumentStore()
    else:
        _document_store = SqlDocumentStore(settings.database_url)
    return _document_store


def get_window_store() -> WindowStore:
    """
    Return the singleton rate-limit window store (Redis when configured).
    """
    global _window_store
    if _window_store:
        return _window_store

    settings = get_settings()
    if settings.redis_url and not settings.use_in_memory_backends:
        _window_store = RedisWindowStore(
            url=settings.redis_url,
            key_prefix=settings.redis_key_prefix,
        )
    else:
        _window_store = InMemoryWindowStore()
    return _window_store


def get_token_registry() -> TokenRegistry:
    global _token_registry
    if _token_registry:
        return _token_registry
    _token_registry = TokenRegistry()
    return _token_registry


def get_login_guard() -> LoginRateGuard:
    settings = get_settings()
    return build_login_guard(
        get_window_store(),
        global_max=settings.global_login_max_attempts,
        global_window_seconds=settings.global_login_window_seconds,
        user_max=settings.user_login_max_attempts,
        user_window_seconds=settings.user_login_window_seconds,
    )


def get_auth_gate() -> AuthGate:
    """
    Return a singleton gate; it owns the thread pool bounding lookups.
    """
    global _auth_gate
    if _auth_gate:
        return _auth_gate
    settings = get_settings()
    _auth_gate = AuthGate(
        get_document_store(),
        get_login_guard(),
        timeout_seconds=settings.credential_timeout_seconds,
        bcrypt_rounds=settings.bcrypt_rounds,
    )
    return _auth_gate


def get_sprint_store() -> SprintStore:
    return SprintStore(
        get_document_store(), max_days=get_settings().max_sprint_days
    )


def get_recurring_manager() -> RecurringTaskManager:
    return RecurringTaskManager(get_document_store())


def get_travel_log_store() -> TravelLogStore:
    return TravelLogStore(get_document_store())


def get_account_admin() -> AccountAdmin:
    return AccountAdmin(get_document_store())


def get_weather_fetcher() -> WeatherFetcher:
    settings = get_settings()
    return partial(
        weather.fetch_sprint_weather,
        lat=settings.default_latitude,
        lng=settings.default_longitude,
        forecast_url=settings.weather_forecast_url,
        archive_url=settings.weather_archive_url,
        timezone=settings.weather_timezone,
        timeout=settings.http_timeout_seconds,
    )


def get_geocoder():
    settings = get_settings()
    return partial(
        geocode.reverse_geocode,
        url=settings.nominatim_url,
        timeout=settings.http_timeout_seconds,
    )


def build_sync_engine(notifier: Notifier | None = None) -> SyncEngine:
    """Assemble a client-side engine over the configured backends."""
    settings = get_settings()
    return SyncEngine(
        auth=get_auth_gate(),
        sprints=get_sprint_store(),
        recurring=get_recurring_manager(),
        travel_log=get_travel_log_store(),
        notifier=notifier,
        weather_fetcher=get_weather_fetcher(),
        undo_seconds=settings.undo_seconds,
        reminder_title=settings.reminder_title,
    )


def reset_backends() -> None:
    """Drop cached singletons (useful in tests)."""
    global _document_store, _window_store, _token_registry, _auth_gate
    _document_store = None
    _auth_gate = None
    _window_store = None
    _token_registry = None
