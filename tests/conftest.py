from __future__ import annotations

from typing import Any, Dict, List, Optional

import pytest

from chatrelay.core import state
from chatrelay.services.room_sweeper import RoomSweeper
from chatrelay.services.session_manager import SessionManager


class FakeTransport:
    """Records what the router sends; optionally fails every send."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: List[Dict[str, Any]] = []
        self.closed_with: Optional[int] = None
        self.fail = fail

    async def send_json(self, data: Any) -> None:
        if self.fail:
            raise RuntimeError("connection reset by peer")
        self.sent.append(data)

    async def close(self, code: int = 1000) -> None:
        self.closed_with = code

    def types(self) -> List[str]:
        return [event["type"] for event in self.sent]

    def of_type(self, event_type: str) -> List[Dict[str, Any]]:
        return [event for event in self.sent if event["type"] == event_type]

    def clear(self) -> None:
        self.sent.clear()


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
async def relay(anyio_backend):
    """A fresh SessionManager with empty stores, writers cancelled afterwards."""
    sessions = state.build_session_manager()
    yield sessions
    await sessions.router.aclose()


@pytest.fixture
def connect(relay: SessionManager):
    """Attach a FakeTransport under the given connection id."""

    def _connect(conn_id: str, fail: bool = False) -> FakeTransport:
        transport = FakeTransport(fail=fail)
        relay.router.attach(conn_id, transport)
        return transport

    return _connect


@pytest.fixture
def app_state(monkeypatch: pytest.MonkeyPatch) -> SessionManager:
    """Swap the global app state for a fresh one (used with TestClient)."""
    sessions = state.build_session_manager()
    monkeypatch.setattr(state, "session_manager", sessions)
    monkeypatch.setattr(state, "sweeper", RoomSweeper(sessions, interval=3600))
    return sessions
