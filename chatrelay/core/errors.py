# chatrelay/core/errors.py

from __future__ import annotations


class ChatError(Exception):
    """
    Base class for protocol errors reported back to the originating connection.

    Every subclass is recovered where it is raised: the transport turns it
    into ``{"type": "error", "kind": <class name>, "message": <text>}`` for
    the sender only. None of them close the connection.
    """

    kind = "ChatError"

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message

    def to_event(self) -> dict:
        return {"type": "error", "kind": self.kind, "message": self.message}


class ValidationError(ChatError):
    """A required field is empty or missing."""

    kind = "ValidationError"


class ConflictError(ChatError):
    """The username is already taken in the room."""

    kind = "ConflictError"


class NotFoundError(ChatError):
    """The target user or the sender's session does not exist."""

    kind = "NotFoundError"


class StateError(ChatError):
    """The operation is not valid for the connection's current state."""

    kind = "StateError"
