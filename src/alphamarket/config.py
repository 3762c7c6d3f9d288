# src/alphamarket/config.py
"""
Application settings, loaded from the environment (and `.env` when present).

Every integration reads its credentials from here; a missing credential
disables the integration instead of crashing the app at import time.
"""

from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        extra="ignore"
    )

    # Environment / DB
    ENV: str = Field(default="dev")
    DATABASE_URL: str = Field(default="sqlite:///./dev.db")
    AUTO_CREATE_TABLES: bool = True
    SEED_DEMO_DATA: bool = False

    # Sessions
    JWT_SECRET: str = "change-me-please"
    JWT_ALG: str = "HS256"
    JWT_EXPIRE_MIN: int = 43200  # 30 days
    SESSION_COOKIE_NAME: str = "am_session"
    PASSWORD_RESET_TTL_MINUTES: int = 60

    # HTTP
    CORS_ORIGINS: str = "*"
    PUBLIC_BASE_URL: str = "http://localhost:5000"

    # Cashfree payment gateway
    CASHFREE_APP_ID: str | None = None
    CASHFREE_SECRET_KEY: str | None = None
    CASHFREE_ENV: str = "sandbox"
    CASHFREE_API_VERSION: str = "2023-08-01"
    PAYMENT_VERIFY_MAX_ATTEMPTS: int = 8
    PAYMENT_VERIFY_INTERVAL_SECONDS: float = 3.0

    # Sandbox.co.in eKYC
    SANDBOX_API_KEY: str | None = None
    SANDBOX_API_SECRET: str | None = None
    SANDBOX_BASE_URL: str = "https://api.sandbox.co.in"

    # Groww market data
    GROWW_API_KEY: str | None = None
    GROWW_API_SECRET: str | None = None

    # Web push
    VAPID_PUBLIC_KEY: str | None = None
    VAPID_PRIVATE_KEY: str | None = None
    VAPID_SUBJECT: str = "mailto:admin@alphamarket.com"

    # Email
    SENDGRID_API_KEY: str | None = None
    SENDGRID_FROM_EMAIL: str = "noreply@alphamarket.com"
    ADMIN_NOTIFICATION_EMAIL: str | None = None

    # Background jobs
    SCHEDULER_ENABLED: bool = True
    SCHEDULER_INTERVAL_SECONDS: int = 60

    # Observability
    METRICS_ENABLED: bool = True

    @field_validator("DATABASE_URL", mode="before")
    def _normalize_db_url(cls, v):
        v = (v or "").strip()
        if v.startswith("postgres://"):
            return v.replace("postgres://", "postgresql+psycopg://", 1)
        return v

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


settings = Settings()
