"""
Login gate: verify an existing credential or provision a new one.

There is no separate registration step. The first successful call for an
unseen username creates its account, which means anyone may claim a free
username without further verification.
"""

from __future__ import annotations

import logging
from concurrent.futures import ThreadPoolExecutor
from concurrent.futures import TimeoutError as FutureTimeout
from dataclasses import dataclass
from typing import Any, Callable

import bcrypt

from jetjot.db import DocumentStore
from jetjot.errors import (
    AccountDisabled,
    BackendUnavailable,
    InvalidCredentials,
    ValidationFailed,
)
from jetjot.ratelimit import LoginRateGuard
from shared.sprint_types import Credential

logger = logging.getLogger(__name__)

# bcrypt only looks at the first 72 bytes of a password.
BCRYPT_MAX_BYTES = 72


@dataclass
class Session:
    username: str
    is_new: bool
    is_admin: bool


def normalize_username(username: str) -> str:
    return (username or "").strip().lower()


def hash_password(password: str, rounds: int = 8) -> str:
    secret = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    return bcrypt.hashpw(secret, bcrypt.gensalt(rounds)).decode("utf-8")


def verify_password(password: str, password_hash: str) -> bool:
    secret = password.encode("utf-8")[:BCRYPT_MAX_BYTES]
    try:
        return bcrypt.checkpw(secret, password_hash.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


class AuthGate:
    def __init__(
        self,
        store: DocumentStore,
        guard: LoginRateGuard,
        *,
        timeout_seconds: float = 10.0,
        bcrypt_rounds: int = 8,
    ):
        self.store = store
        self.guard = guard
        self.timeout_seconds = timeout_seconds
        self.bcrypt_rounds = bcrypt_rounds
        self._executor = ThreadPoolExecutor(
            max_workers=4, thread_name_prefix="credential-lookup"
        )

    def _bounded(self, fn: Callable[..., Any], *args: Any) -> Any:
        """Run a credential store call, giving up after `timeout_seconds`."""
        future = self._executor.submit(fn, *args)
        try:
            return future.result(timeout=self.timeout_seconds)
        except FutureTimeout as exc:
            future.cancel()
            raise BackendUnavailable() from exc
        except ConnectionError as exc:
            raise BackendUnavailable() from exc

    def login_or_create(self, username: str, password: str) -> Session:
        key = normalize_username(username)
        if not key:
            raise ValidationFailed("Username is required.")
        if not password:
            raise ValidationFailed("Password is required.")

        self.guard.check(key)

        credential = self._bounded(self.store.get_credential, key)

        if credential is not None:
            if credential.disabled:
                raise AccountDisabled()
            if not verify_password(password, credential.password_hash):
                raise InvalidCredentials()
            self.guard.reset(key)
            return Session(username=key, is_new=False, is_admin=credential.is_admin)

        credential = Credential(
            username=key,
            password_hash=hash_password(password, self.bcrypt_rounds),
            is_admin=False,
            disabled=False,
        )
        self._bounded(self.store.create_credential, credential)
        self.guard.reset(key)
        logger.info("Provisioned new account %s", key)
        return Session(username=key, is_new=True, is_admin=False)
