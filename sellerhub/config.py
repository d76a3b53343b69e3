"""
Runtime configuration for the payout service.

Values come from the process environment or a local .env file. DATABASE_URL
and SECRET_KEY have no defaults; everything else falls back to the
marketplace-wide payout policy below.
"""
import json
from decimal import Decimal
from functools import lru_cache

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=True,
        extra="ignore",
    )

    APP_NAME: str = "SellerHub Payouts"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # postgresql://, postgresql+psycopg:// or sqlite+aiosqlite://
    DATABASE_URL: str
    DB_POOL_SIZE: int = 10
    DB_MAX_OVERFLOW: int = 20
    DB_POOL_TIMEOUT: int = 30
    DB_POOL_RECYCLE: int = 1800

    # Bearer tokens are minted by the marketplace auth service with this key
    SECRET_KEY: str
    ALGORITHM: str = "HS256"
    ACCESS_TOKEN_EXPIRE_MINUTES: int = 30

    # Seller wallet and admin desk frontends
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
        "http://localhost:5173",
    ]

    # Policy used when a seller has no settings row yet
    PAYOUT_CURRENCY: str = "SAR"
    DEFAULT_MIN_PAYOUT_AMOUNT: Decimal = Decimal("100")
    DEFAULT_HOLD_PERIOD_DAYS: int = 7

    PAYOUT_NUMBER_MAX_RETRIES: int = 3
    PAYOUT_BATCH_PERIOD_DAYS: int = 7

    # Daily auto-payout run
    PAYOUT_SCHEDULER_ENABLED: bool = True
    PAYOUT_BATCH_HOUR: int = 2
    PAYOUT_BATCH_MINUTE: int = 0
    SCHEDULER_TIMEZONE: str = "UTC"

    @field_validator("CORS_ORIGINS", mode="before")
    @classmethod
    def split_origins(cls, value):
        """Accept a JSON array or a comma separated string."""
        if not isinstance(value, str):
            return value
        if value.lstrip().startswith("["):
            return json.loads(value)
        return [origin.strip() for origin in value.split(",") if origin.strip()]

    @property
    def cors_origins_list(self) -> list[str]:
        return list(self.CORS_ORIGINS)


@lru_cache()
def get_settings() -> Settings:
    return Settings()


settings = get_settings()
