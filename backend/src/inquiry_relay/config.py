"""Application configuration via environment variables.

Provides type-safe settings loading using pydantic-settings.
Environment variables can be loaded from a .env file.
"""

from functools import lru_cache
from typing import Optional

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Defaults match a hosted relay reachable over implicit TLS on port 465.
    Production deployments MUST set SMTP_USER, SMTP_PASSWORD and OWNER_EMAIL.

    Environment Variables:
        SMTP_HOST: Relay hostname
        SMTP_PORT: Relay port
        SMTP_SECURE: Use implicit TLS (True) or STARTTLS when offered (False)
        SMTP_USER: Relay login, also used as the envelope sender
        SMTP_PASSWORD: Relay password
        OWNER_EMAIL: Mailbox that receives every inquiry
        DELIVERY_MAX_RETRIES: Attempt budget per inquiry
        RATE_LIMIT_REDIS_URL: Shared store for admission windows (optional)
        LOG_LEVEL: Logging level (default INFO)
    """

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    # Relay
    SMTP_HOST: str = "smtp.hostinger.com"
    SMTP_PORT: int = 465
    SMTP_SECURE: bool = True
    SMTP_USER: Optional[str] = None
    SMTP_PASSWORD: Optional[str] = None
    SMTP_FROM_NAME: str = "Website Inquiry"
    SMTP_TLS_REJECT_UNAUTHORIZED: bool = True
    OWNER_EMAIL: Optional[str] = None

    # Relay timeouts (seconds)
    SMTP_CONNECT_TIMEOUT: float = 10.0
    SMTP_GREETING_TIMEOUT: float = 10.0
    SMTP_SOCKET_TIMEOUT: float = 30.0

    # Connection pool
    SMTP_POOL_MAX_CONNECTIONS: int = 1
    SMTP_POOL_MAX_MESSAGES: int = 100  # 0 = unbounded
    SMTP_RATE_LIMIT: int = 5
    SMTP_RATE_DELTA: float = 20.0
    SMTP_VERIFY_ON_STARTUP: bool = True

    # Delivery
    DELIVERY_MAX_RETRIES: int = 3
    DELIVERY_BACKOFF_UNIT: float = 1.0
    DELIVERY_LOG_PATH: str = "logs/email_sent.log"

    # Admission control
    BURST_LIMIT_WINDOW: int = 60
    BURST_LIMIT_MAX: int = 5
    ABUSE_LIMIT_WINDOW: int = 900
    ABUSE_LIMIT_MAX: int = 20
    RATE_LIMIT_REDIS_URL: Optional[str] = None
    TRUST_PROXY_HEADERS: bool = True

    # Application
    PORT: int = 3001
    LOG_LEVEL: str = "INFO"
    LOG_JSON: bool = True
    ENVIRONMENT: str = "development"
    CORS_ORIGINS: str = "*"

    @field_validator(
        "SMTP_POOL_MAX_CONNECTIONS",
        "SMTP_RATE_LIMIT",
        "DELIVERY_MAX_RETRIES",
        "BURST_LIMIT_WINDOW",
        "BURST_LIMIT_MAX",
        "ABUSE_LIMIT_WINDOW",
        "ABUSE_LIMIT_MAX",
    )
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @field_validator("SMTP_POOL_MAX_MESSAGES")
    @classmethod
    def _non_negative(cls, value: int) -> int:
        if value < 0:
            raise ValueError("must be 0 (unbounded) or positive")
        return value

    @field_validator(
        "SMTP_CONNECT_TIMEOUT",
        "SMTP_GREETING_TIMEOUT",
        "SMTP_SOCKET_TIMEOUT",
        "SMTP_RATE_DELTA",
    )
    @classmethod
    def _positive_duration(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be a positive number of seconds")
        return value

    @property
    def destination_email(self) -> Optional[str]:
        """Mailbox receiving inquiries (OWNER_EMAIL, falling back to SMTP_USER)."""
        return self.OWNER_EMAIL or self.SMTP_USER

    @property
    def pool_max_messages(self) -> Optional[int]:
        """Per-connection message cap, None when unbounded."""
        return self.SMTP_POOL_MAX_MESSAGES or None

    @property
    def cors_origins(self) -> list[str]:
        return [o.strip() for o in self.CORS_ORIGINS.split(",") if o.strip()]


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance.

    Uses lru_cache for singleton behavior.
    Call get_settings.cache_clear() to reload settings.
    """
    return Settings()
