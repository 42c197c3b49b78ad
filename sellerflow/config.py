"""
SellerFlow — Application Configuration
All settings loaded from environment variables via pydantic-settings.
"""

from __future__ import annotations

from decimal import Decimal
from functools import lru_cache
from typing import Dict, List

from pydantic import field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

# Monthly payout seasonality (1 = January). Point estimates; override with
# PAYOUT_SEASONALITY='{"1": 1.12, ...}' to recalibrate.
DEFAULT_PAYOUT_SEASONALITY: Dict[int, float] = {
    1: 1.12,  # Q4 sales paying out
    2: 0.92,  # refund season
    3: 1.02,
    4: 1.00,
    5: 1.03,
    6: 1.04,
    7: 1.10,  # Prime Day
    8: 0.96,
    9: 0.97,
    10: 1.05,
    11: 1.08,
    12: 1.06,
}

DEFAULT_SAFETY_NET_MULTIPLIERS: Dict[str, float] = {
    "low": 1.00,
    "medium": 0.95,
    "high": 0.90,
    "maximum": 0.85,
}


class Settings(BaseSettings):
    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # ── Database ──────────────────────────────────────────────────────────────
    DATABASE_URL: str = "sqlite:///./sellerflow.db"

    # ── Application Settings ──────────────────────────────────────────────────
    ENVIRONMENT: str = "development"  # development | staging | production
    APP_TITLE: str = "SellerFlow"
    APP_VERSION: str = "1.0.0"
    ALLOWED_ORIGINS: List[str] = ["http://localhost:3000", "http://localhost:8000"]
    DEBUG: bool = False
    LOG_LEVEL: str = "INFO"

    # ── Balance projection ────────────────────────────────────────────────────
    DEFAULT_PROJECTION_HORIZON_DAYS: int = 90
    MAX_PROJECTION_HORIZON_DAYS: int = 180
    PAYOUT_TRANSFER_DELAY_DAYS: int = 1  # payout date -> funds in bank

    # ── Daily-settlement payout model ─────────────────────────────────────────
    DAILY_UNLOCK_DELAY_DAYS: int = 7  # delivery -> cash unlocked
    DELIVERY_ESTIMATE_DAYS: int = 3  # purchase -> delivery when unknown
    DAILY_FORECAST_DAYS: int = 90
    DAILY_KNOWN_UNLOCK_DAYS: int = 7
    DAILY_TRAILING_WINDOW_DAYS: int = 30
    DEFAULT_RISK_ADJUSTMENT_PCT: float = 5.0

    # ── Periodic seasonality payout model ─────────────────────────────────────
    SEASONAL_CYCLE_DAYS: int = 14
    SEASONAL_FORECAST_PERIODS: int = 6
    MIN_SEASONAL_HISTORY: int = 3
    DEFAULT_SAFETY_NET_LEVEL: str = "medium"
    PAYOUT_SEASONALITY: Dict[int, float] = DEFAULT_PAYOUT_SEASONALITY
    SAFETY_NET_MULTIPLIERS: Dict[str, float] = DEFAULT_SAFETY_NET_MULTIPLIERS

    @field_validator("ENVIRONMENT")
    @classmethod
    def validate_environment(cls, v: str) -> str:
        allowed = {"development", "staging", "production"}
        if v not in allowed:
            raise ValueError(f"ENVIRONMENT must be one of {allowed}")
        return v

    @field_validator("PAYOUT_SEASONALITY")
    @classmethod
    def validate_seasonality(cls, v: Dict[int, float]) -> Dict[int, float]:
        if set(v) != set(range(1, 13)):
            raise ValueError("PAYOUT_SEASONALITY must define months 1..12")
        if any(factor <= 0 for factor in v.values()):
            raise ValueError("PAYOUT_SEASONALITY factors must be positive")
        return v

    @property
    def is_sqlite(self) -> bool:
        return self.DATABASE_URL.startswith("sqlite")

    @property
    def is_production(self) -> bool:
        return self.ENVIRONMENT == "production"

    @property
    def risk_adjustment_pct_decimal(self) -> Decimal:
        return Decimal(str(self.DEFAULT_RISK_ADJUSTMENT_PCT))

    @property
    def seasonality_decimal(self) -> Dict[int, Decimal]:
        return {m: Decimal(str(f)) for m, f in self.PAYOUT_SEASONALITY.items()}

    @property
    def safety_multipliers_decimal(self) -> Dict[str, Decimal]:
        return {k: Decimal(str(f)) for k, f in self.SAFETY_NET_MULTIPLIERS.items()}


@lru_cache()
def get_settings() -> Settings:
    """Cached settings singleton, usable with FastAPI Depends()."""
    return Settings()


# Module-level convenience alias
settings = get_settings()
