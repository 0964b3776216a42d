from pydantic_settings import BaseSettings, SettingsConfigDict
from pydantic import field_validator, model_validator
from typing import Any, ClassVar
import json
from pathlib import Path
import os


class Settings(BaseSettings):
    API_V1_STR: str = "/api/v1"

    # Database URL
    # Use an absolute path so running the app from different directories
    # (e.g., repo root or backend/) always resolves the same DB file.
    BASE_DIR: ClassVar[Path] = Path(__file__).resolve().parents[2]
    SQLALCHEMY_DATABASE_URL: str = f"sqlite:///{BASE_DIR / 'barbershop.db'}"

    # Redis connection URL for caching; empty/"disabled" turns the cache off
    REDIS_URL: str = "redis://localhost:6379/0"

    # CORS origins
    CORS_ORIGINS: list[str] = ["http://localhost:3000", "http://localhost:5173"]
    CORS_ALLOW_ALL: bool = False

    LOG_LEVEL: str = "INFO"

    # Wall-clock zone used for "now" when filtering past slots. Stored
    # timestamps are naive shop-local times.
    SHOP_TIMEZONE: str = "UTC"

    # Transient storage failures on slot booking and the featured quota are
    # retried this many times before surfacing as Unavailable.
    DB_WRITE_RETRIES: int = 3
    DB_RETRY_BACKOFF_SECONDS: float = 0.05

    # Cache invalidation attempts before the event is parked in the outbox
    CACHE_INVALIDATION_RETRIES: int = 3

    BARBER_LIST_CACHE_TTL: int = 60  # seconds
    AVAILABILITY_CACHE_TTL: int = 300  # seconds

    # Background maintenance (expired pending bookings, outbox replay)
    MAINTENANCE_LOOP_ENABLED: bool = True
    MAINTENANCE_INTERVAL_SECONDS: int = 900
    PENDING_EXPIRY_GRACE_MINUTES: int = 0

    model_config = SettingsConfigDict(
        extra="ignore",
        case_sensitive=True,
    )

    @field_validator("CORS_ORIGINS", mode="before")
    def split_origins(cls, v: Any) -> list[str]:
        """Parse comma-separated or JSON list of origins from environment."""
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
                if isinstance(parsed, list):
                    return parsed
            except json.JSONDecodeError:
                pass
            return [s.strip() for s in v.split(",") if s.strip()]
        return v

    @field_validator("REDIS_URL", "SHOP_TIMEZONE", mode="before")
    def strip_whitespace(cls, v: Any) -> Any:
        if isinstance(v, str):
            return v.strip()
        return v

    @field_validator("DB_WRITE_RETRIES", "CACHE_INVALIDATION_RETRIES")
    def at_least_one_attempt(cls, v: int) -> int:
        return max(1, v)

    @model_validator(mode="after")
    def allow_all_if_requested(cls, values: "Settings") -> "Settings":
        if values.CORS_ALLOW_ALL:
            values.CORS_ORIGINS = ["*"]
        return values


def load_settings() -> "Settings":
    return Settings(_env_file=os.getenv("ENV_FILE", str(Path(__file__).resolve().parents[3] / ".env")))


settings = load_settings()
