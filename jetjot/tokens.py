"""
Bearer tokens for logged-in sessions.
"""

from __future__ import annotations

import secrets
import threading
from typing import Dict, Optional

from jetjot.auth import Session


class TokenRegistry:
    """In-process token -> session map; tokens die with the process."""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._lock = threading.Lock()

    def issue(self, session: Session) -> str:
        token = secrets.token_urlsafe(32)
        with self._lock:
            self._sessions[token] = session
        return token

    def resolve(self, token: str) -> Optional[Session]:
        return self._sessions.get(token)

    def revoke(self, token: str) -> None:
        with self._lock:
            self._sessions.pop(token, None)

    def revoke_user(self, username: str) -> None:
        with self._lock:
            for token in [
                t for t, s in self._sessions.items() if s.username == username
            ]:
                del self._sessions[token]
