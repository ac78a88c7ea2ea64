from __future__ import annotations

from dataclasses import dataclass
from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum


class PriceSourceId(StrEnum):
    FINNHUB = "finnhub"
    POLYGON = "polygon"

    @property
    def alternate(self) -> PriceSourceId:
        return PriceSourceId.POLYGON if self is PriceSourceId.FINNHUB else PriceSourceId.FINNHUB


class RateSource(StrEnum):
    CENTRAL_BANK = "central_bank"
    CACHE = "cache"
    FALLBACK = "fallback"


class Currency(StrEnum):
    USD = "USD"
    MXN = "MXN"


MXN_USD = "MXN_USD"


@dataclass(frozen=True)
class Quote:
    ticker: str
    price: Decimal
    source: PriceSourceId
    resolved_at: datetime


@dataclass(frozen=True)
class ResolvedQuote:
    quote: Quote
    cached: bool = False

    @property
    def price(self) -> Decimal:
        return self.quote.price

    @property
    def source(self) -> PriceSourceId:
        return self.quote.source


@dataclass(frozen=True)
class ExchangeRateRecord:
    """MXN per 1 USD: divide an MXN amount by ``rate`` to get USD."""

    pair: str
    rate: Decimal
    as_of_date: date
    source: RateSource


def normalize_ticker(ticker: str) -> str:
    return (ticker or "").strip().upper()


__all__ = [
    "Currency",
    "ExchangeRateRecord",
    "MXN_USD",
    "PriceSourceId",
    "Quote",
    "RateSource",
    "ResolvedQuote",
    "normalize_ticker",
]
