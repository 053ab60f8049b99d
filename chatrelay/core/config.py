# chatrelay/core/config.py
import os
from typing import List

from dotenv import load_dotenv


class Settings:
    """
    Setup environment variables.
        - HOST / PORT the address uvicorn binds to
        - DEFAULT_ROOM the room used when a join names none
        - HISTORY_LIMIT how many messages each room retains
        - HISTORY_SNAPSHOT_SIZE how many messages a (re)joining user receives
        - SWEEP_INTERVAL_SECONDS how often empty rooms are reclaimed
        - SHUTDOWN_GRACE_SECONDS how long shutdown waits before a hard exit
        - OUTBOX_MAX_PENDING how many undelivered events a connection may queue
        - CORS_ORIGINS comma separated list of allowed origins
    """

    # Load environment variables from the .env file
    load_dotenv()

    HOST: str = os.getenv("HOST", "0.0.0.0")
    PORT: int = int(os.getenv("PORT", "8000"))

    DEFAULT_ROOM: str = os.getenv("DEFAULT_ROOM", "general")
    HISTORY_LIMIT: int = int(os.getenv("HISTORY_LIMIT", "100"))
    HISTORY_SNAPSHOT_SIZE: int = int(os.getenv("HISTORY_SNAPSHOT_SIZE", "20"))

    SWEEP_INTERVAL_SECONDS: float = float(os.getenv("SWEEP_INTERVAL_SECONDS", "600"))
    SHUTDOWN_GRACE_SECONDS: float = float(os.getenv("SHUTDOWN_GRACE_SECONDS", "5"))
    OUTBOX_MAX_PENDING: int = int(os.getenv("OUTBOX_MAX_PENDING", "256"))

    CORS_ORIGINS: List[str] = [
        origin.strip() for origin in os.getenv("CORS_ORIGINS", "*").split(",") if origin.strip()
    ]


settings = Settings()
