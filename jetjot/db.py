"""
Document store for credentials and sprint aggregates.

Two implementations share the `DocumentStore` interface: an in-memory one
for development and tests, and a SQLAlchemy one (Postgres in production,
SQLite in tests) that keeps each sprint as a single row with its `days` and
`travelLog` maps inline as JSON.
"""

from __future__ import annotations

import copy
import json
import threading
from contextlib import contextmanager
from typing import Any, Dict, Iterator, Optional, Protocol

from sqlalchemy import JSON, Boolean, Column, String, create_engine, func, select
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm import Session, declarative_base, sessionmaker

from jetjot.errors import BackendUnavailable, CredentialNotFound, SprintNotFound
from shared.sprint_types import Credential, Sprint

# Map-valued sprint fields that accept "field.<key>" updates.
NESTED_FIELDS = ("days", "travelLog")


class DocumentStore(Protocol):
    """Interface for the per-user document store."""

    def get_credential(self, username: str) -> Optional[Credential]:
        ...

    def create_credential(self, credential: Credential) -> None:
        ...

    def update_credential(self, username: str, **fields: Any) -> None:
        ...

    def list_credentials(self) -> list[Credential]:
        ...

    def delete_credential(self, username: str) -> None:
        ...

    def get_sprint(self, owner: str, sprint_id: str) -> Optional[Sprint]:
        ...

    def create_sprint(self, sprint: Sprint) -> None:
        ...

    def update_sprint(
        self, owner: str, sprint_id: str, updates: Dict[str, Any]
    ) -> None:
        ...

    def delete_sprint(self, owner: str, sprint_id: str) -> None:
        ...

    def list_sprints(self, owner: str) -> list[Sprint]:
        ...

    def count_sprints_by_owner(self) -> Dict[str, int]:
        ...


def _plain(payload: Any) -> Any:
    # Use a JSON round trip to mimic what a real store persists.
    return json.loads(json.dumps(payload, default=str))


def apply_updates(document: dict, updates: Dict[str, Any]) -> dict:
    """
    Apply field-path updates to a sprint document and return the new one.

    Keys are either a top-level field ("name") or "<map>.<key>" for one entry
    of a nested map ("days.2025-03-01", "travelLog.2025-03-01").
    """
    updated = dict(document)
    for path, value in updates.items():
        head, _, key = path.partition(".")
        if key and head in NESTED_FIELDS:
            nested = dict(updated.get(head) or {})
            nested[key] = value
            updated[head] = nested
        elif key:
            raise ValueError(f"Unsupported update path: {path}")
        else:
            updated[head] = value
    return updated


class InMemoryDocumentStore:
    """Simple in-memory document store for development and tests."""

    def __init__(self):
        self.credentials: Dict[str, dict] = {}
        self.sprints: Dict[tuple[str, str], dict] = {}
        self._lock = threading.Lock()

    def reset(self) -> None:
        """Clear all stored data (useful in tests)."""
        with self._lock:
            self.credentials.clear()
            self.sprints.clear()

    def get_credential(self, username: str) -> Optional[Credential]:
        document = self.credentials.get(username)
        if document is None:
            return None
        return Credential.from_document(username, copy.deepcopy(document))

    def create_credential(self, credential: Credential) -> None:
        with self._lock:
            self.credentials[credential.username] = _plain(credential.to_document())

    def update_credential(self, username: str, **fields: Any) -> None:
        with self._lock:
            document = self.credentials.get(username)
            if document is None:
                raise CredentialNotFound()
            current = Credential.from_document(username, document)
            for name, value in fields.items():
                setattr(current, name, value)
            self.credentials[username] = _plain(current.to_document())

    def list_credentials(self) -> list[Credential]:
        return [
            Credential.from_document(username, copy.deepcopy(document))
            for username, document in self.credentials.items()
        ]

    def delete_credential(self, username: str) -> None:
        with self._lock:
            self.credentials.pop(username, None)

    def get_sprint(self, owner: str, sprint_id: str) -> Optional[Sprint]:
        document = self.sprints.get((owner, sprint_id))
        if document is None:
            return None
        return Sprint.from_document(sprint_id, copy.deepcopy(document))

    def create_sprint(self, sprint: Sprint) -> None:
        with self._lock:
            self.sprints[(sprint.owner, sprint.id)] = _plain(sprint.to_document())

    def update_sprint(
        self, owner: str, sprint_id: str, updates: Dict[str, Any]
    ) -> None:
        # The whole update happens under one lock hold, so either every
        # field lands or none does.
        with self._lock:
            document = self.sprints.get((owner, sprint_id))
            if document is None:
                raise SprintNotFound()
            self.sprints[(owner, sprint_id)] = apply_updates(
                document, _plain(updates)
            )

    def delete_sprint(self, owner: str, sprint_id: str) -> None:
        with self._lock:
            self.sprints.pop((owner, sprint_id), None)

    def list_sprints(self, owner: str) -> list[Sprint]:
        return [
            Sprint.from_document(sprint_id, copy.deepcopy(document))
            for (doc_owner, sprint_id), document in self.sprints.items()
            if doc_owner == owner
        ]

    def count_sprints_by_owner(self) -> Dict[str, int]:
        counts: Dict[str, int] = {}
        for owner, _sprint_id in self.sprints:
            counts[owner] = counts.get(owner, 0) + 1
        return counts


class SqlDocumentStore:
    """
    SQLAlchemy-backed implementation. Accepts any SQLAlchemy URL (e.g., Postgres or SQLite for tests).
    """

    def __init__(self, database_url: str):
        if not database_url:
            raise ValueError("DATABASE_URL is required for SqlDocumentStore")
        self.engine = create_engine(
            database_url,
            future=True,
            pool_pre_ping=True,
            pool_recycle=1800,
        )
        self.Session = sessionmaker(
            bind=self.engine, class_=Session, expire_on_commit=False, future=True
        )
        Base.metadata.create_all(self.engine)

    @contextmanager
    def _session(self) -> Iterator[Session]:
        try:
            with self.Session() as session:
                yield session
        except OperationalError as exc:
            raise BackendUnavailable() from exc

    def _to_credential(self, row: "CredentialRow") -> Credential:
        return Credential(
            username=row.username,
            password_hash=row.password_hash,
            is_admin=row.is_admin,
            disabled=row.disabled,
            created_at=row.created_at,
        )

    def _to_sprint(self, row: "SprintRow") -> Sprint:
        return Sprint.from_document(
            row.sprint_id,
            {
                "owner": row.owner,
                "name": row.name,
                "startDate": row.start_date,
                "endDate": row.end_date,
                "days": row.days or {},
                "travelLog": row.travel_log or {},
                "createdAt": row.created_at,
            },
        )

    def get_credential(self, username: str) -> Optional[Credential]:
        with self._session() as session:
            row = session.get(CredentialRow, username)
            return self._to_credential(row) if row else None

    def create_credential(self, credential: Credential) -> None:
        with self._session() as session:
            session.add(
                CredentialRow(
                    username=credential.username,
                    password_hash=credential.password_hash,
                    is_admin=credential.is_admin,
                    disabled=credential.disabled,
                    created_at=credential.created_at,
                )
            )
            session.commit()

    def update_credential(self, username: str, **fields: Any) -> None:
        with self._session() as session:
            row = session.get(CredentialRow, username)
            if not row:
                raise CredentialNotFound()
            for name, value in fields.items():
                setattr(row, name, value)
            session.commit()

    def list_credentials(self) -> list[Credential]:
        with self._session() as session:
            rows = session.execute(
                select(CredentialRow).order_by(CredentialRow.created_at.asc())
            ).scalars()
            return [self._to_credential(row) for row in rows]

    def delete_credential(self, username: str) -> None:
        with self._session() as session:
            row = session.get(CredentialRow, username)
            if row:
                session.delete(row)
                session.commit()

    def get_sprint(self, owner: str, sprint_id: str) -> Optional[Sprint]:
        with self._session() as session:
            row = session.get(SprintRow, (owner, sprint_id))
            return self._to_sprint(row) if row else None

    def create_sprint(self, sprint: Sprint) -> None:
        document = _plain(sprint.to_document())
        with self._session() as session:
            session.add(
                SprintRow(
                    owner=sprint.owner,
                    sprint_id=sprint.id,
                    name=document["name"],
                    start_date=document["startDate"],
                    end_date=document["endDate"],
                    days=document["days"],
                    travel_log=document["travelLog"],
                    created_at=document["createdAt"],
                )
            )
            session.commit()

    def update_sprint(
        self, owner: str, sprint_id: str, updates: Dict[str, Any]
    ) -> None:
        with self._session() as session:
            stmt = (
                select(SprintRow)
                .where(SprintRow.owner == owner, SprintRow.sprint_id == sprint_id)
                .with_for_update()
            )
            row = session.execute(stmt).scalar_one_or_none()
            if not row:
                raise SprintNotFound()
            current = {
                "name": row.name,
                "days": row.days or {},
                "travelLog": row.travel_log or {},
            }
            updated = apply_updates(current, _plain(updates))
            # Reassign whole maps; in-place JSON mutation is not tracked.
            row.name = updated["name"]
            row.days = updated["days"]
            row.travel_log = updated["travelLog"]
            session.commit()

    def delete_sprint(self, owner: str, sprint_id: str) -> None:
        with self._session() as session:
            row = session.get(SprintRow, (owner, sprint_id))
            if row:
                session.delete(row)
                session.commit()

    def list_sprints(self, owner: str) -> list[Sprint]:
        with self._session() as session:
            rows = session.execute(
                select(SprintRow).where(SprintRow.owner == owner)
            ).scalars()
            return [self._to_sprint(row) for row in rows]

    def count_sprints_by_owner(self) -> Dict[str, int]:
        with self._session() as session:
            rows = session.execute(
                select(SprintRow.owner, func.count()).group_by(SprintRow.owner)
            ).all()
            return {owner: count for owner, count in rows}


Base = declarative_base()


class CredentialRow(Base):
    __tablename__ = "users"

    username = Column(String, primary_key=True)
    password_hash = Column(String, nullable=False)
    is_admin = Column(Boolean, nullable=False, default=False)
    disabled = Column(Boolean, nullable=False, default=False)
    created_at = Column(String, nullable=False)


class SprintRow(Base):
    __tablename__ = "sprints"

    owner = Column(String, primary_key=True)
    sprint_id = Column(String, primary_key=True)
    name = Column(String, nullable=False, default="")
    start_date = Column(String, nullable=False)
    end_date = Column(String, nullable=False)
    days = Column(JSON, nullable=False)
    travel_log = Column(JSON, nullable=False)
    created_at = Column(String, nullable=False, index=True)
