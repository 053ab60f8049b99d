# chatrelay/api/routes/stats.py

from typing import Any, Dict, List

from fastapi import APIRouter

from chatrelay.core import state
from chatrelay.models.models import Message

router = APIRouter(prefix="/api")

# ============================================================================
# READ-ONLY VIEWS OVER THE RELAY STATE
# ============================================================================

@router.get("/stats")
async def get_stats() -> Dict[str, Any]:
    """
    Aggregate statistics.

    Example Response:
        {
            "total_users": 3,
            "total_rooms": 2,
            "rooms": [{"name": "general", "user_count": 2}, ...],
            "messages_sent": 42,
            "uptime": 3600.5,
            "timestamp": "2025-01-01T00:00:00+00:00"
        }
    """
    return await state.session_manager.stats()


@router.get("/users")
async def get_users() -> List[Dict[str, Any]]:
    """Every joined user with their room and join time."""
    return await state.session_manager.roster()


@router.get("/messages/{room}", response_model=List[Message])
async def get_messages(room: str):
    """
    Full retained history of a room, oldest first.

    Unknown rooms return an empty list rather than 404: a room with no
    history is indistinguishable from one that never existed.
    """
    return await state.session_manager.room_history(room)
