from __future__ import annotations

from datetime import date


class MarketDataError(Exception):
    """Base class for every failure raised by the market-data engine."""


class ProviderUnavailable(MarketDataError):
    """Network error, timeout or non-2xx answer from an upstream provider."""

    def __init__(self, provider: str, message: str, *, status_code: int | None = None) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider
        self.status_code = status_code


class InvalidResponse(MarketDataError):
    """Provider answered, but the payload is malformed or the value is not usable."""

    def __init__(self, provider: str, message: str) -> None:
        super().__init__(f"{provider}: {message}")
        self.provider = provider


class NotFoundForDate(MarketDataError):
    # Expected on weekends and bank holidays; only used inside the rate day-walk.
    def __init__(self, target_date: date) -> None:
        super().__init__(f"No observation published for {target_date.isoformat()}")
        self.target_date = target_date


class UnsupportedPair(MarketDataError):
    def __init__(self, base: str, quote: str) -> None:
        super().__init__(f"Unsupported currency pair {base}->{quote}")
        self.base = base
        self.quote = quote


class ConfigurationMissing(MarketDataError):
    def __init__(self, setting: str) -> None:
        super().__init__(f"Missing configuration value: {setting}")
        self.setting = setting


class NoPriceAvailable(MarketDataError):
    """Terminal failure once the preferred provider and its fallback both failed.

    Callers must keep the previously known price instead of overwriting it.
    """

    def __init__(self, ticker: str, reasons: dict[str, str] | None = None) -> None:
        super().__init__(f"No price available for {ticker}")
        self.ticker = ticker
        self.reasons = reasons or {}


class InvalidPriceStateTransition(MarketDataError):
    pass


class AssetNotFound(MarketDataError):
    def __init__(self, asset_id: object) -> None:
        super().__init__(f"Asset {asset_id} not found")
        self.asset_id = asset_id


__all__ = [
    "AssetNotFound",
    "ConfigurationMissing",
    "InvalidPriceStateTransition",
    "InvalidResponse",
    "MarketDataError",
    "NoPriceAvailable",
    "NotFoundForDate",
    "ProviderUnavailable",
    "UnsupportedPair",
]
