# chatrelay/api/routes/health.py

from datetime import datetime, timezone

from fastapi import APIRouter

from chatrelay.core import state

router = APIRouter()


@router.get("/health")
async def health():
    """
    Health check endpoint.

    Returns:
        dict: Status, open connection count, joined users, active rooms
    """
    sessions = state.session_manager
    return {
        "status": "OK",
        "timestamp": datetime.now(timezone.utc).isoformat(),
        "connections": sessions.router.connection_count(),
        "users": len(sessions.registry),
        "rooms": len(sessions.directory),
    }
