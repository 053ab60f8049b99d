# chatrelay/core/state.py
from __future__ import annotations

from chatrelay.core.config import settings
from chatrelay.services.broadcast_router import BroadcastRouter
from chatrelay.services.connection_registry import ConnectionRegistry
from chatrelay.services.history_ring import HistoryRing
from chatrelay.services.room_directory import RoomDirectory
from chatrelay.services.room_sweeper import RoomSweeper
from chatrelay.services.session_manager import SessionManager


def build_session_manager() -> SessionManager:
    """Wire a fresh, empty set of stores behind one SessionManager."""
    directory = RoomDirectory()
    return SessionManager(
        registry=ConnectionRegistry(),
        directory=directory,
        history=HistoryRing(limit=settings.HISTORY_LIMIT),
        router=BroadcastRouter(directory, max_pending=settings.OUTBOX_MAX_PENDING),
        default_room=settings.DEFAULT_ROOM,
        snapshot_size=settings.HISTORY_SNAPSHOT_SIZE,
    )


# Global singletons for app state
session_manager = build_session_manager()
sweeper = RoomSweeper(session_manager, interval=settings.SWEEP_INTERVAL_SECONDS)
