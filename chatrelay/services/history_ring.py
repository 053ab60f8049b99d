# chatrelay/services/history_ring.py

from __future__ import annotations

from collections import deque
from typing import Deque, Dict, List, Optional

from chatrelay.models.models import Message


class HistoryRing:
    """
    Bounded per-room message history, independent of room membership.

    Each room keeps at most ``limit`` messages; appending past the limit
    evicts the oldest first. A history can outlive its room's members
    until the room sweeper drops it.
    """

    def __init__(self, limit: int = 100) -> None:
        if limit < 1:
            raise ValueError("History limit must be at least 1")
        self.limit = limit
        self._rooms: Dict[str, Deque[Message]] = {}

    def ensure(self, room: str) -> None:
        if room not in self._rooms:
            self._rooms[room] = deque(maxlen=self.limit)

    def append(self, room: str, message: Message) -> None:
        self.ensure(room)
        self._rooms[room].append(message)

    def recent(self, room: str, n: Optional[int] = None) -> List[Message]:
        """
        Return up to the newest ``n`` messages of a room, oldest first.

        ``n=None`` returns everything retained. Unknown rooms yield ``[]``.
        """
        messages = self._rooms.get(room)
        if not messages:
            return []
        if n is None:
            return list(messages)
        if n <= 0:
            return []
        return list(messages)[-n:]

    def has(self, room: str) -> bool:
        return room in self._rooms

    def rooms(self) -> List[str]:
        return list(self._rooms)

    def drop(self, room: str) -> None:
        self._rooms.pop(room, None)
