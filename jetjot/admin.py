"""
Administrative actions over accounts.

Account holders never change their own credential flags; only these
functions (exposed to admins over HTTP and via scripts/manage_users.py) do.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from jetjot.auth import normalize_username
from jetjot.db import DocumentStore
from jetjot.errors import CredentialNotFound

logger = logging.getLogger(__name__)


@dataclass
class UserSummary:
    username: str
    is_admin: bool
    disabled: bool
    created_at: str
    sprint_count: int


class AccountAdmin:
    def __init__(self, store: DocumentStore):
        self.store = store

    def list_users(self) -> list[UserSummary]:
        counts = self.store.count_sprints_by_owner()
        return [
            UserSummary(
                username=cred.username,
                is_admin=cred.is_admin,
                disabled=cred.disabled,
                created_at=cred.created_at,
                sprint_count=counts.get(cred.username, 0),
            )
            for cred in self.store.list_credentials()
        ]

    def is_admin(self, username: str) -> bool:
        credential = self.store.get_credential(normalize_username(username))
        return bool(credential and credential.is_admin)

    def set_disabled(self, username: str, disabled: bool) -> None:
        key = normalize_username(username)
        self.store.update_credential(key, disabled=disabled)
        logger.info("%s account %s", "Disabled" if disabled else "Enabled", key)

    def set_admin(self, username: str, is_admin: bool) -> None:
        key = normalize_username(username)
        self.store.update_credential(key, is_admin=is_admin)
        logger.info("Set is_admin=%s for %s", is_admin, key)

    def delete_account(self, username: str) -> int:
        """Delete every sprint the user owns, then the credential."""
        key = normalize_username(username)
        if self.store.get_credential(key) is None:
            raise CredentialNotFound()
        sprints = self.store.list_sprints(key)
        for sprint in sprints:
            self.store.delete_sprint(key, sprint.id)
        self.store.delete_credential(key)
        logger.info("Deleted account %s and %d sprints", key, len(sprints))
        return len(sprints)
