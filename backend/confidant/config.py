"""Application Configuration — environment-driven settings via pydantic-settings.

Invariants:
    - All secrets come from environment variables (never hardcoded)
    - get_settings() is cached (lru_cache) — single instance per process
    - report_revoke_threshold >= report_suspend_threshold >= 1

Design Decisions:
    - pydantic-settings over raw os.environ: validation, type coercion, .env file support
    - Defaults provided for all non-secret settings: works out-of-the-box with docker-compose
    - session_retention_days is carried for the external cleanup job, unused by the broker
"""

from functools import lru_cache
from typing import Annotated

from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, NoDecode, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings from environment variables."""

    model_config = SettingsConfigDict(env_file=".env", case_sensitive=False)

    # Database
    database_url: str = (
        "postgresql+asyncpg://confidant:confidant@db:5432/confidant"
    )

    @field_validator("database_url", mode="before")
    @classmethod
    def convert_postgres_url(cls, v: str) -> str:
        """Hosting providers hand out postgresql:// but asyncpg needs postgresql+asyncpg://."""
        if isinstance(v, str) and v.startswith("postgresql://"):
            return v.replace("postgresql://", "postgresql+asyncpg://", 1)
        return v

    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Moderation
    report_suspend_threshold: int = Field(3, ge=1)
    report_revoke_threshold: int = Field(5, ge=1)

    @model_validator(mode="after")
    def check_thresholds(self):
        if self.report_revoke_threshold < self.report_suspend_threshold:
            raise ValueError(
                "REPORT_REVOKE_THRESHOLD must be greater than or equal to "
                "REPORT_SUSPEND_THRESHOLD",
            )
        return self

    # Matching
    max_match_attempts: int = Field(3, ge=1)

    # Retention (external cleanup collaborator)
    session_retention_days: int = Field(90, ge=1)

    # Notifications
    telegram_bot_token: str | None = None
    telegram_api_base: str = "https://api.telegram.org"
    notification_timeout_seconds: float = 10.0

    # Admins: chat ids allowed to call admin routes (comma-separated in env)
    admin_chat_ids: Annotated[list[str], NoDecode] = []

    @field_validator("admin_chat_ids", mode="before")
    @classmethod
    def split_admin_chat_ids(cls, v):
        if isinstance(v, str):
            return [part.strip() for part in v.split(",") if part.strip()]
        return v

    # API
    cors_origins: list[str] = ["http://localhost:5173"]

    # Observability
    log_level: str = "INFO"
    log_format: str = "json"


@lru_cache
def get_settings() -> Settings:
    return Settings()
