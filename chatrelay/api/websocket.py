# chatrelay/api/websocket.py

from __future__ import annotations

import json
import logging
import uuid

from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from pydantic import ValidationError as PayloadError

from chatrelay.core import state
from chatrelay.core.errors import ChatError
from chatrelay.models import events
from chatrelay.models.events import (
    ChangeRoomEvent,
    InboundEvent,
    JoinEvent,
    PrivateMessageEvent,
    SendMessageEvent,
    TypingEvent,
    inbound_adapter,
)
from chatrelay.services.session_manager import SessionManager

logger = logging.getLogger(__name__)

router = APIRouter()

# ============================================================================
# WEBSOCKET ENDPOINT
# ============================================================================

@router.websocket("/ws")
async def websocket_endpoint(websocket: WebSocket):
    """
    WebSocket endpoint for the chat relay.

    Protocol:
    =========

    Client -> Server Actions:
    -------------------------
    Join:
        {"action": "join", "username": "alice", "room": "general"}
        Response: user-joined (others), members-update (room),
                  joined-ack + history-snapshot (you)

    Send Message:
        {"action": "message", "text": "Hello!"}
        Response: message-event to the whole room, you included

    Typing:
        {"action": "typing", "active": true}
        Response: typing-event to everyone else in the room

    Private Message:
        {"action": "private", "target_username": "bob", "text": "psst"}
        Response: private-event (bob), private-ack (you)

    Change Room:
        {"action": "change-room", "room": "random"}
        Response: user-left / members-update (old room),
                  user-joined / members-update (new room),
                  joined-ack + history-snapshot (you)

    Server -> Client Error:
        {"type": "error", "kind": "ConflictError", "message": "..."}

    Lifecycle:
    ==========
    1. Connection accepted and given an opaque connection id
    2. Client must "join" before any other action has an effect
    3. Each frame is handled on its own; errors go back to this client only
    4. On disconnect the session is removed and the room notified

    Error Handling:
        - Binary frame, invalid JSON or malformed payload: ValidationError event
        - Protocol errors: error event with the error kind
        - Unexpected failures: logged, generic error event, connection kept
    """
    await websocket.accept()
    conn_id = uuid.uuid4().hex
    sessions = state.session_manager
    sessions.router.attach(conn_id, websocket)
    logger.info("🔌 Connection %s opened", conn_id)

    reason = "client disconnected"
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(code=message.get("code", 1000))

            data = message.get("text")
            if data is None:
                _reply(
                    sessions,
                    conn_id,
                    events.error_event("Binary frames are not supported; send JSON text", kind="ValidationError"),
                )
                continue
            await handle_frame(sessions, conn_id, data)

    except WebSocketDisconnect as e:
        reason = f"code {e.code}"
    except Exception as e:
        logger.error("WebSocket error on %s: %s", conn_id, e)
        reason = "transport error"
    finally:
        try:
            await sessions.disconnect(conn_id, reason)
        finally:
            sessions.router.detach(conn_id)


async def handle_frame(sessions: SessionManager, conn_id: str, data: str) -> None:
    """
    Decode one text frame and run it against the session manager.

    Never raises: every failure ends up as an ``error`` event queued for
    ``conn_id``.
    """
    try:
        event = inbound_adapter.validate_python(json.loads(data))
    except json.JSONDecodeError:
        _reply(sessions, conn_id, events.error_event("Invalid JSON", kind="ValidationError"))
        return
    except PayloadError as e:
        _reply(sessions, conn_id, events.error_event(_describe(e), kind="ValidationError"))
        return

    logger.debug("Websocket input from %s: %s", conn_id, event.action)

    try:
        await dispatch_event(sessions, conn_id, event)
    except ChatError as e:
        logger.info("%s for %s on %s: %s", e.kind, conn_id, event.action, e.message)
        _reply(sessions, conn_id, e.to_event())
    except Exception:
        logger.exception("Error handling %s from %s", event.action, conn_id)
        _reply(sessions, conn_id, events.error_event(f"Failed to handle {event.action}"))


async def dispatch_event(sessions: SessionManager, conn_id: str, event: InboundEvent) -> None:
    if isinstance(event, JoinEvent):
        await sessions.join(conn_id, event.username, event.room)
    elif isinstance(event, SendMessageEvent):
        await sessions.send_message(conn_id, event.text)
    elif isinstance(event, TypingEvent):
        await sessions.set_typing(conn_id, event.active)
    elif isinstance(event, PrivateMessageEvent):
        await sessions.send_private(conn_id, event.target_username, event.text)
    elif isinstance(event, ChangeRoomEvent):
        await sessions.change_room(conn_id, event.room)


def _reply(sessions: SessionManager, conn_id: str, event: dict) -> None:
    sessions.router.enqueue([sessions.router.to_connection(conn_id, event)])


def _describe(error: PayloadError) -> str:
    first = error.errors()[0] if error.errors() else None
    if first is None:
        return "Invalid payload"
    location = ".".join(str(part) for part in first.get("loc", ()))
    if first.get("type") == "union_tag_invalid" or first.get("type") == "union_tag_not_found":
        return "Unknown or missing action"
    return f"Invalid payload: {location} {first.get('msg', '')}".strip()
