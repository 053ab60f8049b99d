# chatrelay/main.py

from __future__ import annotations

import asyncio
from contextlib import asynccontextmanager
import os

from fastapi import FastAPI
import uvicorn
from fastapi.middleware.cors import CORSMiddleware

from chatrelay.core import state
from chatrelay.core.config import settings
from chatrelay.core.logging import setup_logging, get_logger
from chatrelay.api.routes import root, health, stats
from chatrelay.api import websocket as websocket_module
from chatrelay.models import events
from chatrelay.services.session_manager import SessionManager

# Configure logging first
setup_logging()
logger = get_logger(__name__)

SHUTDOWN_NOTICE = "Server is shutting down. Please refresh to reconnect."


@asynccontextmanager
async def lifespan(app: FastAPI):
    logger.info("🚀 Chat relay starting")
    asyncio.get_running_loop().set_exception_handler(_log_loop_exception)
    state.sweeper.start()
    try:
        yield
    finally:
        await state.sweeper.stop()
        # Normally a no-op: RelayServer has already closed every connection
        await graceful_shutdown(state.session_manager, settings.SHUTDOWN_GRACE_SECONDS)


# FastAPI app
app = FastAPI(title="Chat Relay", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# REST routes
app.include_router(root.router)
app.include_router(health.router)
app.include_router(stats.router)

# WebSocket routes
app.include_router(websocket_module.router)


def _log_loop_exception(loop: asyncio.AbstractEventLoop, context: dict) -> None:
    # Unhandled task errors are logged; the process keeps serving.
    error = context.get("exception")
    logger.error("Unhandled error in event loop: %s", context.get("message"), exc_info=error)


def _hard_exit() -> None:
    logger.warning("⚠️ Forcing server shutdown...")
    os._exit(1)


async def graceful_shutdown(
    sessions: SessionManager,
    grace: float,
    on_timeout=_hard_exit,
) -> bool:
    """
    Tell every connection the server is going away, then close them.

    Args:
        sessions: The session manager whose connections are closed
        grace: Seconds to wait for the close to complete
        on_timeout: Called when closing overruns ``grace`` (hard exit by default)

    Returns:
        True if every connection closed within the grace period
    """
    router = sessions.router
    if not router.connection_count():
        return True
    logger.info("🛑 Shutting down chat relay gracefully...")
    router.enqueue([router.to_all(events.system_message(SHUTDOWN_NOTICE))])
    try:
        await asyncio.wait_for(router.close_all(), timeout=grace)
    except asyncio.TimeoutError:
        on_timeout()
        return False
    logger.info("✅ Chat relay closed successfully")
    return True


class RelayServer(uvicorn.Server):
    """
    uvicorn server that says goodbye before dropping connections.

    uvicorn closes open WebSockets (code 1012) before the app's lifespan
    exit runs, so the shutdown notice has to go out here, ahead of the
    base class shutdown.
    """

    async def shutdown(self, sockets=None) -> None:
        await graceful_shutdown(state.session_manager, settings.SHUTDOWN_GRACE_SECONDS)
        await super().shutdown(sockets=sockets)


def run() -> None:
    config = uvicorn.Config("chatrelay.main:app", host=settings.HOST, port=settings.PORT)
    RelayServer(config).run()


if __name__ == "__main__":
    run()

# ============================================================================
# END OF FILE
# ============================================================================
