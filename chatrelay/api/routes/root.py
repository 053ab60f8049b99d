# chatrelay/api/routes/root.py

from fastapi import APIRouter

router = APIRouter()


@router.get("/")
async def root():
    """
    Root endpoint - API information.

    Returns basic info about the relay and where its endpoints live.
    """
    return {
        "message": "Chat Relay - rooms, presence and typing over WebSockets",
        "version": "1.0",
        "features": ["rooms", "presence", "typing", "private_messages", "bounded_history"],
        "endpoints": {
            "websocket": "/ws",
            "health": "/health",
            "stats": "/api/stats",
            "users": "/api/users",
            "messages": "/api/messages/{room}",
        },
    }
