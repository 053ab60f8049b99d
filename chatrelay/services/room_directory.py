# chatrelay/services/room_directory.py

from __future__ import annotations

import logging
from typing import Dict, List, Set, Tuple

logger = logging.getLogger(__name__)

# ============================================================================
# ROOM DIRECTORY
# ============================================================================

class RoomDirectory:
    """
    Maps room name -> set of member connection ids.

    Rooms are created on first ``add_member`` and deleted by
    ``remove_member`` as soon as their member set becomes empty, so under
    normal operation no empty room is ever observable. ``empty_rooms`` and
    ``drop`` exist for the periodic sweep only.

    Data Structures:
        rooms: Maps room name -> Set of connection ids
               Example: {"general": {"a1b2...", "c3d4..."}}

    Usage:
        directory = RoomDirectory()
        directory.add_member("general", conn_id)
        directory.members("general")
    """

    def __init__(self) -> None:
        self._rooms: Dict[str, Set[str]] = {}

    def add_member(self, room: str, conn_id: str) -> None:
        """
        Add a connection to a room, creating the room if needed.

        Args:
            room: Room name
            conn_id: Connection id of the new member
        """
        if room not in self._rooms:
            self._rooms[room] = set()
            logger.info("✓ Created room '%s'", room)
        self._rooms[room].add(conn_id)

    def remove_member(self, room: str, conn_id: str) -> bool:
        """
        Remove a connection from a room.

        Args:
            room: Room name
            conn_id: Connection id to remove

        Returns:
            True if the room became empty and was deleted, False otherwise
        """
        members = self._rooms.get(room)
        if members is None:
            return False

        members.discard(conn_id)
        if not members:
            del self._rooms[room]
            logger.info("✓ Deleted empty room '%s'", room)
            return True
        return False

    def members(self, room: str) -> Set[str]:
        """Return a copy of the room's member ids (empty for unknown rooms)."""
        return set(self._rooms.get(room, ()))

    def exists(self, room: str) -> bool:
        return room in self._rooms

    def all_rooms(self) -> List[Tuple[str, int]]:
        """Return ``(name, member_count)`` for every room."""
        return [(name, len(members)) for name, members in self._rooms.items()]

    def empty_rooms(self) -> List[str]:
        return [name for name, members in self._rooms.items() if not members]

    def drop(self, room: str) -> None:
        self._rooms.pop(room, None)

    def __len__(self) -> int:
        return len(self._rooms)
