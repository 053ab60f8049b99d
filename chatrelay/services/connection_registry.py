# chatrelay/services/connection_registry.py

from __future__ import annotations

from typing import Dict, List, Optional

from chatrelay.models.models import Session


class ConnectionRegistry:
    """
    Maps connection id -> Session for every joined connection.

    The registry is a passive store: it does not enforce username
    uniqueness. The join handler checks ``find_by_username_in_room`` before
    calling ``put`` while holding the session manager's lock.
    """

    def __init__(self) -> None:
        self._sessions: Dict[str, Session] = {}

    def put(self, conn_id: str, session: Session) -> None:
        self._sessions[conn_id] = session

    def get(self, conn_id: str) -> Optional[Session]:
        return self._sessions.get(conn_id)

    def remove(self, conn_id: str) -> Optional[Session]:
        """Drop the session for ``conn_id``; returns it, or None if absent."""
        return self._sessions.pop(conn_id, None)

    def find_by_username_in_room(self, username: str, room: str) -> Optional[Session]:
        """Exact, case-sensitive lookup of a username within one room."""
        for session in self._sessions.values():
            if session.username == username and session.room == room:
                return session
        return None

    def find_by_username(self, username: str) -> Optional[Session]:
        """Global lookup across all rooms, first match in join order."""
        for session in self._sessions.values():
            if session.username == username:
                return session
        return None

    def all(self) -> List[Session]:
        return list(self._sessions.values())

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, conn_id: object) -> bool:
        return conn_id in self._sessions
