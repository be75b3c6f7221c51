from dataclasses import dataclass
from decimal import Decimal
from pydantic_settings import BaseSettings
from pydantic import field_validator
from functools import lru_cache
import json

from therapy_payouts.db_types import MONEY_SCALE, RATE_SCALE


def check_money_places(places: int) -> int:
    if not 0 <= places <= MONEY_SCALE:
        raise ValueError(f"MONEY_DECIMAL_PLACES must be between 0 and {MONEY_SCALE} (stored scale)")
    return places


def check_commission_rate(rate: Decimal) -> Decimal:
    if rate < 0 or rate > 1:
        raise ValueError("COMMISSION_RATE must be between 0 and 1")
    if rate != rate.quantize(Decimal(1).scaleb(-RATE_SCALE)):
        raise ValueError(f"COMMISSION_RATE must have at most {RATE_SCALE} decimal places")
    return rate


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # Database
    DATABASE_URL: str = "sqlite+aiosqlite:///./therapy_payouts.db"

    # Database Connection Pool Settings
    DB_POOL_SIZE: int = 10  # Base number of connections in pool
    DB_MAX_OVERFLOW: int = 20  # Extra connections allowed beyond pool_size
    DB_POOL_TIMEOUT: int = 30  # Seconds to wait for connection from pool
    DB_POOL_RECYCLE: int = 1800  # Recycle connections after 30 minutes

    # App Settings
    APP_NAME: str = "Therapy Payouts Service"
    APP_VERSION: str = "1.0.0"
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # CORS - accepts JSON string, comma-separated, or list
    CORS_ORIGINS: list[str] = [
        "http://localhost:3000",
    ]

    # Currency (major units, no cents conversion)
    CURRENCY: str = "THB"
    MONEY_DECIMAL_PLACES: int = 2

    # Commission Policy
    COMMISSION_RATE: Decimal = Decimal("0.70")  # Therapist share of net amount

    # Payout Policy
    WEEKLY_PAYOUT_MINIMUM: Decimal = Decimal("1000")  # Sweep threshold per therapist
    ON_DEMAND_PAYOUT_MINIMUM: Decimal = Decimal("500")  # Single-therapist threshold
    PAYOUT_WEEKDAY: int = 4  # Monday = 0, Friday = 4
    PAYOUT_HOUR: int = 10
    PAYOUT_TIMEZONE: str = "Asia/Bangkok"
    RECENT_PAYOUT_DAYS: int = 30
    RECENT_PAYOUT_LIMIT: int = 10

    # Background Jobs
    SCHEDULER_ENABLED: bool = True

    @field_validator('CORS_ORIGINS', mode='before')
    @classmethod
    def parse_cors_origins(cls, v):
        if isinstance(v, str):
            try:
                return json.loads(v)
            except json.JSONDecodeError:
                return [origin.strip() for origin in v.split(',')]
        return v

    @field_validator('COMMISSION_RATE')
    @classmethod
    def validate_commission_rate(cls, v: Decimal) -> Decimal:
        return check_commission_rate(v)

    @field_validator('MONEY_DECIMAL_PLACES')
    @classmethod
    def validate_money_places(cls, v: int) -> int:
        return check_money_places(v)

    @field_validator('PAYOUT_WEEKDAY')
    @classmethod
    def validate_payout_weekday(cls, v: int) -> int:
        if not 0 <= v <= 6:
            raise ValueError("PAYOUT_WEEKDAY must be 0 (Monday) to 6 (Sunday)")
        return v

    @property
    def cors_origins_list(self) -> list[str]:
        return self.CORS_ORIGINS

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        case_sensitive = True


@dataclass(frozen=True)
class PayoutPolicy:
    """Commission and payout policy values handed to the services."""

    commission_rate: Decimal = Decimal("0.70")
    weekly_minimum: Decimal = Decimal("1000")
    on_demand_minimum: Decimal = Decimal("500")
    money_places: int = 2
    payout_weekday: int = 4
    payout_hour: int = 10
    timezone: str = "Asia/Bangkok"
    recent_payout_days: int = 30
    recent_payout_limit: int = 10
    currency: str = "THB"

    def __post_init__(self):
        check_commission_rate(self.commission_rate)
        check_money_places(self.money_places)

    @classmethod
    def from_settings(cls, settings: Settings) -> "PayoutPolicy":
        return cls(
            commission_rate=settings.COMMISSION_RATE,
            weekly_minimum=settings.WEEKLY_PAYOUT_MINIMUM,
            on_demand_minimum=settings.ON_DEMAND_PAYOUT_MINIMUM,
            money_places=settings.MONEY_DECIMAL_PLACES,
            payout_weekday=settings.PAYOUT_WEEKDAY,
            payout_hour=settings.PAYOUT_HOUR,
            timezone=settings.PAYOUT_TIMEZONE,
            recent_payout_days=settings.RECENT_PAYOUT_DAYS,
            recent_payout_limit=settings.RECENT_PAYOUT_LIMIT,
            currency=settings.CURRENCY,
        )


@lru_cache()
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


@lru_cache()
def get_payout_policy() -> PayoutPolicy:
    """Get the payout policy derived from the cached settings."""
    return PayoutPolicy.from_settings(get_settings())


settings = get_settings()
