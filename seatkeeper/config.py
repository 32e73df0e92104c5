from pydantic import Field, ValidationInfo, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from typing import Literal


class Settings(BaseSettings):
    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")

    ENV: Literal["dev", "prod", "test"] = "prod"
    DEBUG: bool = False

    # App
    APP_NAME: str = "seatkeeper"
    APP_HOST: str = "0.0.0.0"
    APP_PORT: int = 8000
    ALLOWED_ORIGINS: list[str] = ["http://localhost:5173", "http://127.0.0.1:5173"]

    # Database
    DATABASE_URL: str  # async driver (postgresql+asyncpg://... or sqlite+aiosqlite:///...)
    SYNC_DATABASE_URL: str | None = Field(default=None, validate_default=True)  # sync driver for Alembic (e.g., postgresql+psycopg://...)

    # Redis
    REDIS_URL: str = "redis://localhost:6379/0"

    # Auth
    JWT_SECRET: str = "dev-secret-change-me"  # set a strong random value in prod
    JWT_EXPIRE_MINUTES: int = 60 * 24 * 7
    SESSION_COOKIE_NAME: str = "session"
    ADMIN_ACCESS_CODE: str | None = None  # unset disables /auth/admin-login

    # Transactions
    TX_MAX_ATTEMPTS: int = 5
    TX_RETRY_BASE_MS: int = 20

    # Sessions
    DEFAULT_SESSION_MINUTES: int = 60

    # Rate limits
    RL_REG_PER_USER_10S: int = 5

    # Logging / Observability
    LOG_LEVEL: str = "INFO"
    SLOW_QUERY_MS: int = 300
    METRICS_ENABLED: bool = True
    REQUEST_ID_HEADER: str = "X-Request-ID"

    # Notifications
    NOTIFY_STREAM: str = "notify:signups"
    RESEND_API_KEY: str | None = None  # unset logs messages instead of sending
    MAIL_FROM: str = "Seatkeeper <no-reply@seatkeeper.local>"

    @field_validator("SYNC_DATABASE_URL", mode="before")
    @classmethod
    def default_sync_if_missing(cls, v, info: ValidationInfo):
        if v:
            return v
        url = info.data.get("DATABASE_URL")
        # Swap asyncpg for psycopg so Alembic can run synchronously
        if url and url.startswith("postgresql+asyncpg://"):
            return url.replace("postgresql+asyncpg://", "postgresql+psycopg://", 1)
        if url and url.startswith("sqlite+aiosqlite://"):
            return url.replace("sqlite+aiosqlite://", "sqlite://", 1)
        return v


def get_settings() -> Settings:
    # process entrypoints only (uvicorn, workers, alembic); the app itself gets Settings passed in
    global _SETTINGS_SINGLETON
    try:
        return _SETTINGS_SINGLETON  # type: ignore[name-defined]
    except NameError:
        _SETTINGS_SINGLETON = Settings()  # type: ignore[assignment]
        return _SETTINGS_SINGLETON
