from __future__ import annotations

from decimal import Decimal
from functools import cache
from pathlib import Path

from pydantic_settings import BaseSettings, SettingsConfigDict

PROJECT_ROOT = Path(__file__).resolve().parents[1]
ARTIFACTS_DIR = PROJECT_ROOT / "artifacts"
DB_FILE = ARTIFACTS_DIR / "portfolio.db"


class AppSettings(BaseSettings):
    # Empty credentials mean "not configured"; callers degrade instead of failing.
    finnhub_api_key: str = ""
    polygon_api_key: str = ""
    banxico_api_token: str = ""

    finnhub_requests_per_minute: int = 60
    polygon_requests_per_minute: int = 5
    banxico_requests_per_minute: int = 60

    price_ttl_seconds: float = 60.0
    exchange_rate_ttl_seconds: float = 3600.0
    http_timeout_seconds: float = 10.0
    fallback_exchange_rate: Decimal = Decimal("20.0")
    min_refresh_interval_seconds: float = 300.0

    db_file: Path = DB_FILE

    model_config = SettingsConfigDict(env_file=".env", env_file_encoding="utf-8", extra="ignore")


@cache
def config() -> AppSettings:
    return AppSettings()
