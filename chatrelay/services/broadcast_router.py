# chatrelay/services/broadcast_router.py

from __future__ import annotations

import asyncio
from dataclasses import dataclass
import logging
from typing import Any, Dict, Iterable, Optional, Protocol, Tuple, Union

from chatrelay.services.room_directory import RoomDirectory

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """Anything that can receive a JSON event; a FastAPI WebSocket in production."""

    async def send_json(self, data: Any) -> None: ...

    async def close(self, code: int = 1000) -> None: ...


@dataclass(frozen=True)
class Delivery:
    """An event and the connection ids it goes to, captured at creation time."""

    recipients: Tuple[str, ...]
    event: Dict[str, Any]


@dataclass(frozen=True)
class _Close:
    code: int


@dataclass
class _Outbox:
    transport: Transport
    queue: "asyncio.Queue[Union[Dict[str, Any], _Close]]"
    task: Optional["asyncio.Task[None]"] = None


# ============================================================================
# BROADCAST ROUTER
# ============================================================================

class BroadcastRouter:
    """
    Routes outbound events to live WebSocket connections.

    Two-phase delivery:
        1. While the session manager holds its lock, one of the scope
           helpers (``to_room``, ``to_connection``, ``to_all``) snapshots
           the recipient ids into a ``Delivery`` and ``enqueue`` drops the
           event into each recipient's outbox. Nothing is awaited here.
        2. A writer task per connection drains its outbox and performs the
           actual ``send_json`` outside the lock.

    Each recipient therefore sees events in the order the state changes
    happened, and a slow recipient only delays its own outbox.

    Data Structures:
        outboxes: Maps connection id -> (transport, queue, writer task)

    Error Handling:
        A failed send is logged and skipped; the connection's later events
        and every other recipient are unaffected. An outbox that is full
        drops the event (best-effort, at-most-once delivery).
    """

    def __init__(self, directory: RoomDirectory, max_pending: int = 256) -> None:
        self.directory = directory
        self.max_pending = max_pending
        self._outboxes: Dict[str, _Outbox] = {}

    def attach(self, conn_id: str, transport: Transport) -> None:
        """
        Start routing events for a connection.

        Must be called from a running event loop: it spawns the
        connection's writer task.
        """
        outbox = _Outbox(transport=transport, queue=asyncio.Queue(maxsize=self.max_pending))
        outbox.task = asyncio.create_task(self._writer(conn_id, outbox), name=f"outbox-{conn_id}")
        self._outboxes[conn_id] = outbox
        logger.info("✓ Connection %s attached. Total: %d", conn_id, len(self._outboxes))

    def detach(self, conn_id: str) -> None:
        """Stop routing events for a connection; pending events are dropped."""
        outbox = self._outboxes.pop(conn_id, None)
        if outbox is None:
            return
        if outbox.task is not None:
            outbox.task.cancel()
        logger.info("✗ Connection %s detached. Total: %d", conn_id, len(self._outboxes))

    def connection_count(self) -> int:
        return len(self._outboxes)

    # ------------------------------------------------------------------
    # Scopes
    # ------------------------------------------------------------------

    def to_room(
        self, room: str, event: Dict[str, Any], exclude: Optional[str] = None
    ) -> Delivery:
        """
        Target every current member of ``room``, optionally minus one connection.

        Args:
            room: Room name
            event: JSON-ready event dict
            exclude: Connection id to leave out (usually the originator)

        Returns:
            Delivery with the member set as it is right now
        """
        recipients = sorted(cid for cid in self.directory.members(room) if cid != exclude)
        return Delivery(tuple(recipients), event)

    def to_connection(self, conn_id: str, event: Dict[str, Any]) -> Delivery:
        return Delivery((conn_id,), event)

    def to_all(self, event: Dict[str, Any]) -> Delivery:
        return Delivery(tuple(self._outboxes), event)

    # ------------------------------------------------------------------
    # Sending
    # ------------------------------------------------------------------

    def enqueue(self, deliveries: Iterable[Delivery]) -> int:
        """
        Queue each delivery for each of its recipients, in order.

        Returns:
            Number of (recipient, event) pairs queued
        """
        queued = 0
        for delivery in deliveries:
            event_type = delivery.event.get("type")
            for conn_id in delivery.recipients:
                outbox = self._outboxes.get(conn_id)
                if outbox is None:
                    # Already gone; its disconnect is being processed elsewhere
                    logger.debug("Skipped %s for detached connection %s", event_type, conn_id)
                    continue
                try:
                    outbox.queue.put_nowait(delivery.event)
                    queued += 1
                except asyncio.QueueFull:
                    logger.warning("Outbox full for %s, dropped %s", conn_id, event_type)
        return queued

    async def drain(self) -> None:
        """Wait until every attached outbox has been flushed."""
        await asyncio.gather(*(outbox.queue.join() for outbox in list(self._outboxes.values())))

    async def close_all(self, code: int = 1001) -> None:
        """
        Flush and close every attached transport.

        Events already queued (e.g. a shutdown notice) are sent before the
        close frame. Returns once every writer has finished.
        """
        tasks = []
        for conn_id, outbox in list(self._outboxes.items()):
            try:
                outbox.queue.put_nowait(_Close(code))
            except asyncio.QueueFull:
                logger.warning("Outbox full for %s, closing without flush", conn_id)
                if outbox.task is not None:
                    outbox.task.cancel()
                await self._close_transport(conn_id, outbox.transport, code)
                continue
            if outbox.task is not None:
                tasks.append(outbox.task)
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

    async def aclose(self) -> None:
        """Cancel every writer without flushing."""
        for conn_id in list(self._outboxes):
            self.detach(conn_id)

    async def _writer(self, conn_id: str, outbox: _Outbox) -> None:
        while True:
            item = await outbox.queue.get()
            try:
                if isinstance(item, _Close):
                    await self._close_transport(conn_id, outbox.transport, item.code)
                    return
                await outbox.transport.send_json(item)
            except Exception as e:
                logger.warning("Send error to %s (%s): %s", conn_id, item.get("type"), e)
            finally:
                outbox.queue.task_done()

    @staticmethod
    async def _close_transport(conn_id: str, transport: Transport, code: int) -> None:
        try:
            await transport.close(code=code)
        except Exception as e:
            logger.debug("Close error for %s: %s", conn_id, e)
