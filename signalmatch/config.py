import os
from typing import List

from dotenv import load_dotenv
from pydantic import BaseModel, Field

load_dotenv(".env")


def _env_flag(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: str) -> List[str]:
    raw = os.getenv(name, default)
    return [item.strip() for item in raw.split(",") if item.strip()]


class Settings(BaseModel):
    # Network
    host: str = Field(default_factory=lambda: os.getenv("HOST", "0.0.0.0"))
    port: int = Field(
        default_factory=lambda: int(os.getenv("PORT", "5000")),
        description="WebSocket signaling port",
    )
    api_port: int = Field(
        default_factory=lambda: int(os.getenv("API_PORT", "5001")),
        description="HTTP status API port",
    )
    enable_api: bool = Field(default_factory=lambda: _env_flag("ENABLE_API", "true"))
    allowed_origins: List[str] = Field(
        default_factory=lambda: _env_list("ALLOWED_ORIGINS", "*"),
        description="Origins accepted by the WebSocket handshake and CORS; '*' allows all",
    )

    # Matchmaking
    queue_timeout_seconds: float = Field(
        default_factory=lambda: float(os.getenv("QUEUE_TIMEOUT_SECONDS", "300")),
        description="How long a participant may wait in the queue before eviction",
    )
    match_interval_ms: int = Field(
        default_factory=lambda: int(os.getenv("MATCH_INTERVAL_MS", "5000")),
        description="Matchmaker tick period",
    )
    default_display_name: str = Field(
        default_factory=lambda: os.getenv("DEFAULT_DISPLAY_NAME", "Stranger")
    )

    # Relay
    strict_relay: bool = Field(
        default_factory=lambda: _env_flag("STRICT_RELAY", "true"),
        description="Only relay to the sender's current partner",
    )

    # Transport limits
    outbound_queue_size: int = Field(
        default_factory=lambda: int(os.getenv("OUTBOUND_QUEUE_SIZE", "256"))
    )
    max_message_bytes: int = Field(
        default_factory=lambda: int(os.getenv("MAX_MESSAGE_BYTES", str(1024 * 1024)))
    )

    log_level: str = Field(default_factory=lambda: os.getenv("LOG_LEVEL", "INFO"))


settings = Settings()
