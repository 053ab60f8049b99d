# chatrelay/models/models.py
from datetime import datetime, timezone
import uuid

from pydantic import BaseModel, Field


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def new_message_id() -> str:
    return uuid.uuid4().hex


class Session(BaseModel):
    """Chat identity of one joined connection."""

    conn_id: str
    username: str
    room: str
    joined_at: datetime = Field(default_factory=utcnow)
    is_typing: bool = False


class MemberInfo(BaseModel):
    conn_id: str
    username: str
    joined_at: datetime
    is_typing: bool = False


class Message(BaseModel):
    id: str = Field(default_factory=new_message_id)
    username: str
    text: str
    timestamp: datetime = Field(default_factory=utcnow)
    room: str


class PrivateMessage(BaseModel):
    # Never stored in a room history
    id: str = Field(default_factory=new_message_id)
    from_username: str
    to_username: str
    text: str
    timestamp: datetime = Field(default_factory=utcnow)
