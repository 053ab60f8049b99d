# chatrelay/models/events.py
"""
Wire events exchanged over the ``/ws`` WebSocket.

Inbound frames are a closed set of variants discriminated on ``action`` and
are decoded with :data:`inbound_adapter`. Required text fields default to
empty strings so that blank and missing values reach the session manager,
which reports them as ``ValidationError`` with a readable message; wrong
types are rejected here by pydantic.

Outbound events are plain JSON-ready dicts keyed by ``type``.
"""

from __future__ import annotations

from typing import Annotated, Iterable, List, Literal, Optional, Union

from pydantic import BaseModel, Field, TypeAdapter

from chatrelay.models.models import MemberInfo, Message, PrivateMessage, utcnow


# ============================================================================
# CLIENT -> SERVER
# ============================================================================

class JoinEvent(BaseModel):
    action: Literal["join"]
    username: str = ""
    room: Optional[str] = None


class SendMessageEvent(BaseModel):
    action: Literal["message"]
    text: str = ""


class TypingEvent(BaseModel):
    action: Literal["typing"]
    active: bool


class PrivateMessageEvent(BaseModel):
    action: Literal["private"]
    target_username: str = ""
    text: str = ""


class ChangeRoomEvent(BaseModel):
    action: Literal["change-room"]
    room: str = ""


InboundEvent = Annotated[
    Union[JoinEvent, SendMessageEvent, TypingEvent, PrivateMessageEvent, ChangeRoomEvent],
    Field(discriminator="action"),
]

inbound_adapter: TypeAdapter[InboundEvent] = TypeAdapter(InboundEvent)


# ============================================================================
# SERVER -> CLIENT
# ============================================================================

def _now_iso() -> str:
    return utcnow().isoformat()


def user_joined(username: str) -> dict:
    return {
        "type": "user-joined",
        "kind": "system",
        "username": username,
        "message": f"{username} joined the chat",
        "timestamp": _now_iso(),
    }


def user_left(username: str) -> dict:
    return {
        "type": "user-left",
        "kind": "system",
        "username": username,
        "message": f"{username} left the chat",
        "timestamp": _now_iso(),
    }


def members_update(room: str, members: Iterable[MemberInfo]) -> dict:
    return {
        "type": "members-update",
        "room": room,
        "members": [m.model_dump(mode="json") for m in members],
    }


def joined_ack(username: str, room: str) -> dict:
    return {
        "type": "joined-ack",
        "kind": "welcome",
        "username": username,
        "room": room,
        "message": f"Welcome to the {room} chat room, {username}! 🎉",
        "timestamp": _now_iso(),
    }


def history_snapshot(room: str, messages: List[Message]) -> dict:
    return {
        "type": "history-snapshot",
        "room": room,
        "messages": [m.model_dump(mode="json") for m in messages],
    }


def message_event(message: Message) -> dict:
    return {"type": "message-event", **message.model_dump(mode="json")}


def typing_event(username: str, active: bool) -> dict:
    return {"type": "typing-event", "username": username, "active": active}


def private_event(message: PrivateMessage) -> dict:
    return {
        "type": "private-event",
        "id": message.id,
        "from_username": message.from_username,
        "text": message.text,
        "timestamp": message.timestamp.isoformat(),
    }


def private_ack(message: PrivateMessage) -> dict:
    return {
        "type": "private-ack",
        "id": message.id,
        "to_username": message.to_username,
        "text": message.text,
        "timestamp": message.timestamp.isoformat(),
    }


def system_message(text: str) -> dict:
    return {
        "type": "system-message",
        "kind": "system",
        "message": text,
        "timestamp": _now_iso(),
    }


def error_event(message: str, kind: str = "InternalError") -> dict:
    return {"type": "error", "kind": kind, "message": message}
