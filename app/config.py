import logging
import sys
from functools import lru_cache
from typing import Literal

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore",
    )

    # Persistence
    STORE_BACKEND: Literal["supabase", "memory"] = "supabase"
    SUPABASE_URL: str | None = None
    SUPABASE_API_KEY: str | None = None
    SUPABASE_REALTIME: bool = True

    # App config
    CORS_ORIGINS: list[str] = ["http://localhost:5173"]
    DEBUG: bool = False
    PUBLIC_BASE_URL: str = "http://localhost:5173"
    ROOM_ROUTE_PREFIX: str = "room"

    # Upstash Redis (presence tracking)
    UPSTASH_REDIS_REST_URL: str | None = None
    UPSTASH_REDIS_REST_TOKEN: str | None = None

    # Rooms and game state
    ROOM_CODE_MAX_ATTEMPTS: int = 5
    GAME_STATE_MAX_RETRIES: int = 3

    # WebSocket config
    WS_HEARTBEAT_INTERVAL: int = 30
    WS_CONNECTION_TIMEOUT: int = 120

    # Presence expiry
    PRESENCE_TTL_SECONDS: int = 90
    PRESENCE_SWEEP_INTERVAL: int = 30

    @field_validator("UPSTASH_REDIS_REST_URL")
    @classmethod
    def validate_redis_url(cls, v: str | None) -> str | None:
        if v is not None and not v.startswith("https://"):
            raise ValueError("UPSTASH_REDIS_REST_URL must be a valid HTTPS URL")
        return v

    @field_validator("UPSTASH_REDIS_REST_TOKEN")
    @classmethod
    def validate_redis_token(cls, v: str | None) -> str | None:
        if v is not None and not v.strip():
            raise ValueError("UPSTASH_REDIS_REST_TOKEN cannot be empty")
        return v

    @field_validator("ROOM_ROUTE_PREFIX")
    @classmethod
    def strip_route_prefix(cls, v: str) -> str:
        return v.strip("/")

    @property
    def presence_enabled(self) -> bool:
        return bool(self.UPSTASH_REDIS_REST_URL and self.UPSTASH_REDIS_REST_TOKEN)

    def room_url(self, code: str) -> str:
        """Shareable link for a room; opening it is the invitation."""
        base = self.PUBLIC_BASE_URL.rstrip("/")
        return f"{base}/{self.ROOM_ROUTE_PREFIX}/{code.upper()}"


def configure_logging(debug: bool = False) -> None:
    """Configure logging for the application."""
    log_level = logging.DEBUG if debug else logging.INFO
    log_format = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"

    logging.basicConfig(
        level=log_level,
        format=log_format,
        handlers=[logging.StreamHandler(sys.stdout)],
    )

    # Reduce noise from third-party libraries
    logging.getLogger("httpx").setLevel(logging.WARNING)
    logging.getLogger("httpcore").setLevel(logging.WARNING)
    logging.getLogger("hpack").setLevel(logging.WARNING)


@lru_cache
def get_settings() -> Settings:
    settings = Settings()
    configure_logging(settings.DEBUG)
    logger.info("Settings loaded successfully")
    logger.debug("Store backend: %s", settings.STORE_BACKEND)
    logger.debug("Presence tracking enabled: %s", settings.presence_enabled)
    return settings
