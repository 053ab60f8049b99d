# chatrelay/services/session_manager.py

from __future__ import annotations

import asyncio
from datetime import datetime, timezone
import logging
from typing import Any, Dict, List, Optional

from chatrelay.core.errors import ConflictError, NotFoundError, StateError, ValidationError
from chatrelay.models import events
from chatrelay.models.models import MemberInfo, Message, PrivateMessage, Session
from chatrelay.services.broadcast_router import BroadcastRouter, Delivery
from chatrelay.services.connection_registry import ConnectionRegistry
from chatrelay.services.history_ring import HistoryRing
from chatrelay.services.room_directory import RoomDirectory

logger = logging.getLogger(__name__)

# ============================================================================
# SESSION PROTOCOL
# ============================================================================

class SessionManager:
    """
    Owns the shared chat state and runs the per-connection protocol.

    Lifecycle of a connection:
        Unjoined --join--> Joined --change_room--> Joined --disconnect--> (gone)

    The registry, directory and history are only touched while ``lock`` is
    held. Each operation mutates them and captures the recipients of every
    resulting event as one atomic step, then hands the deliveries to the
    router's outboxes. Membership and ``Session.room`` therefore never
    diverge, even with many connections joining, moving and leaving at
    once.

    Protocol errors (``ChatError`` subclasses) are raised to the caller,
    which reports them to the originating connection only.
    """

    def __init__(
        self,
        registry: ConnectionRegistry,
        directory: RoomDirectory,
        history: HistoryRing,
        router: BroadcastRouter,
        default_room: str = "general",
        snapshot_size: int = 20,
    ) -> None:
        self.registry = registry
        self.directory = directory
        self.history = history
        self.router = router
        self.default_room = default_room
        self.snapshot_size = snapshot_size
        self.lock = asyncio.Lock()
        self.messages_sent = 0
        self.started_at = datetime.now(timezone.utc)

    # ------------------------------------------------------------------
    # Operations
    # ------------------------------------------------------------------

    async def join(self, conn_id: str, username: Optional[str], room: Optional[str] = None) -> Session:
        """
        Join a room for the first time on this connection.

        Args:
            conn_id: Connection id assigned by the transport
            username: Requested username, trimmed before use
            room: Room name; blank or missing means the default room

        Returns:
            The new Session

        Raises:
            StateError: The connection already joined a room
            ValidationError: The username is blank
            ConflictError: The username is taken in that room

        Events, in order: ``user-joined`` to the other members,
        ``members-update`` to the whole room, then ``joined-ack`` and
        ``history-snapshot`` to the joiner.
        """
        async with self.lock:
            if self.registry.get(conn_id) is not None:
                raise StateError("Already joined a room; use change-room to switch rooms")

            name = (username or "").strip()
            if not name:
                raise ValidationError("Username is required")

            room_name = self._room_or_default(room)
            if self.registry.find_by_username_in_room(name, room_name) is not None:
                raise ConflictError("Username already taken in this room")

            session = Session(conn_id=conn_id, username=name, room=room_name)
            self.registry.put(conn_id, session)
            self.directory.add_member(room_name, conn_id)
            self.history.ensure(room_name)

            self._publish(
                self.router.to_room(room_name, events.user_joined(name), exclude=conn_id),
                self.router.to_room(room_name, events.members_update(room_name, self.member_list(room_name))),
                self.router.to_connection(conn_id, events.joined_ack(name, room_name)),
                self._snapshot_for(conn_id, room_name),
            )

        logger.info("👤 %s joined room '%s'", name, room_name)
        return session

    async def send_message(self, conn_id: str, text: Optional[str]) -> Optional[Message]:
        """Post to the sender's room. Blank text or an unjoined sender is ignored."""
        body = (text or "").strip()
        async with self.lock:
            session = self.registry.get(conn_id)
            if session is None or not body:
                return None

            message = Message(username=session.username, text=body, room=session.room)
            self.history.append(session.room, message)
            self.messages_sent += 1
            self._publish(self.router.to_room(session.room, events.message_event(message)))

        logger.info("💬 [%s] %s: %s", message.room, message.username, _preview(body))
        return message

    async def set_typing(self, conn_id: str, active: bool) -> None:
        async with self.lock:
            session = self.registry.get(conn_id)
            if session is None:
                return
            session.is_typing = active
            self._publish(
                self.router.to_room(
                    session.room, events.typing_event(session.username, active), exclude=conn_id
                )
            )

    async def change_room(self, conn_id: str, new_room: Optional[str]) -> Optional[Session]:
        """
        Move a joined connection to another room.

        A connection without a session, or a move to the room it is
        already in, is ignored and returns None.

        Raises:
            ValidationError: The target room name is blank
            ConflictError: The username is taken in the target room
        """
        target = (new_room or "").strip()
        async with self.lock:
            session = self.registry.get(conn_id)
            if session is None:
                return None
            if not target:
                raise ValidationError("Room name is required")

            old_room = session.room
            if target == old_room:
                return None
            if self.registry.find_by_username_in_room(session.username, target) is not None:
                raise ConflictError("Username already taken in this room")

            self.directory.remove_member(old_room, conn_id)
            self.directory.add_member(target, conn_id)
            session.room = target
            session.is_typing = False
            self.history.ensure(target)

            deliveries: List[Delivery] = [
                self.router.to_room(old_room, events.user_left(session.username), exclude=conn_id),
                self.router.to_room(target, events.user_joined(session.username), exclude=conn_id),
            ]
            if self.directory.exists(old_room):
                deliveries.append(
                    self.router.to_room(old_room, events.members_update(old_room, self.member_list(old_room)))
                )
            deliveries += [
                self.router.to_room(target, events.members_update(target, self.member_list(target))),
                self.router.to_connection(conn_id, events.joined_ack(session.username, target)),
                self._snapshot_for(conn_id, target),
            ]
            self._publish(*deliveries)

        logger.info("🚪 %s moved from '%s' to '%s'", session.username, old_room, target)
        return session

    async def disconnect(self, conn_id: str, reason: str = "disconnect") -> Optional[Session]:
        """
        Tear down a connection's session. Safe to call more than once.

        Returns:
            The removed Session, or None if the connection never joined
            (or was already disconnected)
        """
        async with self.lock:
            session = self.registry.remove(conn_id)
            if session is None:
                logger.info("❌ Unknown connection %s disconnected (%s)", conn_id, reason)
                return None

            room = session.room
            self.directory.remove_member(room, conn_id)
            self._publish(
                self.router.to_room(room, events.user_left(session.username), exclude=conn_id),
                self.router.to_room(room, events.members_update(room, self.member_list(room))),
            )

        logger.info("❌ %s disconnected (%s)", session.username, reason)
        return session

    async def send_private(
        self, conn_id: str, target_username: Optional[str], text: Optional[str]
    ) -> PrivateMessage:
        """
        Deliver a direct message to one user in any room.

        Raises:
            NotFoundError: The sender has not joined, or no one is using
                ``target_username``
            ValidationError: Target username or text is blank

        The message is never stored and never reaches a room.
        """
        target_name = (target_username or "").strip()
        body = (text or "").strip()
        async with self.lock:
            sender = self.registry.get(conn_id)
            if sender is None:
                raise NotFoundError("Join a room before sending private messages")
            if not target_name or not body:
                raise ValidationError("Target username and message are required")

            target = self.registry.find_by_username(target_name)
            if target is None:
                raise NotFoundError("User not found or offline")

            message = PrivateMessage(from_username=sender.username, to_username=target.username, text=body)
            self._publish(
                self.router.to_connection(target.conn_id, events.private_event(message)),
                self.router.to_connection(conn_id, events.private_ack(message)),
            )

        logger.info("🔒 Private message: %s -> %s", message.from_username, message.to_username)
        return message

    # ------------------------------------------------------------------
    # Read-only views
    # ------------------------------------------------------------------

    def member_list(self, room: str) -> List[MemberInfo]:
        """
        Current members of ``room`` sorted by username.

        Ids present in the directory without a session are skipped.
        Caller must hold ``lock``.
        """
        members = []
        for cid in self.directory.members(room):
            session = self.registry.get(cid)
            if session is None:
                continue
            members.append(
                MemberInfo(
                    conn_id=cid,
                    username=session.username,
                    joined_at=session.joined_at,
                    is_typing=session.is_typing,
                )
            )
        members.sort(key=lambda m: m.username)
        return members

    async def stats(self) -> Dict[str, Any]:
        async with self.lock:
            rooms = [
                {"name": name, "user_count": count}
                for name, count in sorted(self.directory.all_rooms())
            ]
            total_users = len(self.registry)
        now = datetime.now(timezone.utc)
        return {
            "total_users": total_users,
            "total_rooms": len(rooms),
            "rooms": rooms,
            "messages_sent": self.messages_sent,
            "uptime": (now - self.started_at).total_seconds(),
            "timestamp": now.isoformat(),
        }

    async def roster(self) -> List[Dict[str, Any]]:
        async with self.lock:
            return [
                {"username": s.username, "room": s.room, "joined_at": s.joined_at.isoformat()}
                for s in self.registry.all()
            ]

    async def room_history(self, room: str) -> List[Message]:
        async with self.lock:
            return self.history.recent(room)

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _room_or_default(self, room: Optional[str]) -> str:
        name = (room or "").strip()
        return name or self.default_room

    def _snapshot_for(self, conn_id: str, room: str) -> Delivery:
        recent = self.history.recent(room, self.snapshot_size)
        return self.router.to_connection(conn_id, events.history_snapshot(room, recent))

    def _publish(self, *deliveries: Delivery) -> None:
        self.router.enqueue(deliveries)


def _preview(text: str, limit: int = 50) -> str:
    return text if len(text) <= limit else text[:limit] + "..."
