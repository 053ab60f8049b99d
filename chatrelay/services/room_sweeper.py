# chatrelay/services/room_sweeper.py

from __future__ import annotations

import asyncio
import logging
from typing import List, Optional

from chatrelay.services.session_manager import SessionManager

logger = logging.getLogger(__name__)


class RoomSweeper:
    """
    Periodic safety net that reclaims memberless rooms and their history.

    Rooms are normally deleted the moment their last member leaves; the
    history of such a room stays around so a quick rejoin still sees it.
    Every ``interval`` seconds the sweeper takes the session manager's
    lock and drops:
        - directory entries whose member set is empty
        - histories whose room has no members
    """

    def __init__(self, sessions: SessionManager, interval: float = 600.0) -> None:
        self.sessions = sessions
        self.interval = interval
        self._task: Optional[asyncio.Task[None]] = None

    async def sweep_once(self) -> List[str]:
        """Run one sweep; returns the names of the rooms reclaimed."""
        directory = self.sessions.directory
        history = self.sessions.history
        async with self.sessions.lock:
            reclaimed = set(directory.empty_rooms())
            for room in reclaimed:
                directory.drop(room)
            for room in history.rooms():
                if not directory.exists(room):
                    history.drop(room)
                    reclaimed.add(room)

        if reclaimed:
            logger.info("🧹 Swept %d empty room(s): %s", len(reclaimed), ", ".join(sorted(reclaimed)))
        return sorted(reclaimed)

    async def run(self) -> None:
        while True:
            await asyncio.sleep(self.interval)
            try:
                await self.sweep_once()
            except Exception:
                logger.exception("Room sweep failed")

    def start(self) -> None:
        if self._task is None or self._task.done():
            self._task = asyncio.create_task(self.run(), name="room-sweeper")
            logger.info("✓ Room sweeper running every %ss", self.interval)

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
