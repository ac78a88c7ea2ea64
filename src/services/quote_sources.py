from __future__ import annotations

from decimal import Decimal
from typing import Protocol

import requests

from domain.errors import ConfigurationMissing, InvalidResponse, ProviderUnavailable
from domain.market import PriceSourceId

from .finnhub_client import FinnhubAPIError, FinnhubClient
from .polygon_client import PolygonAPIError, PolygonClient


class QuoteSource(Protocol):
    """One vendor, one blocking HTTP call, one price or an error."""

    source_id: PriceSourceId

    def fetch_price(self, ticker: str) -> Decimal: ...


def validate_price(source_id: PriceSourceId, value: Decimal | None) -> Decimal:
    if value is None or not value.is_finite() or value <= 0:
        raise InvalidResponse(source_id.value, f"unusable price {value!r}")
    return value


def _translate(source_id: PriceSourceId, exc: FinnhubAPIError | PolygonAPIError) -> Exception:
    # Transport failures and HTTP error statuses make the vendor unavailable;
    # anything else means it answered with something we cannot use.
    transport_errors = (requests.ConnectionError, requests.Timeout, requests.HTTPError)
    if exc.status_code is not None or isinstance(exc.__cause__, transport_errors):
        return ProviderUnavailable(source_id.value, str(exc), status_code=exc.status_code)
    return InvalidResponse(source_id.value, str(exc))


class FinnhubQuoteSource(QuoteSource):
    source_id = PriceSourceId.FINNHUB

    def __init__(self, *, client: FinnhubClient | None) -> None:
        self.client = client

    def fetch_price(self, ticker: str) -> Decimal:
        if self.client is None:
            raise ConfigurationMissing("finnhub_api_key")
        try:
            quote = self.client.get_quote(symbol=ticker)
        except FinnhubAPIError as exc:
            raise _translate(self.source_id, exc) from exc
        if quote.is_empty:
            raise InvalidResponse(self.source_id.value, f"empty quote for {ticker}")
        return validate_price(self.source_id, quote.current)


class PolygonQuoteSource(QuoteSource):
    source_id = PriceSourceId.POLYGON

    def __init__(self, *, client: PolygonClient | None) -> None:
        self.client = client

    def fetch_price(self, ticker: str) -> Decimal:
        if self.client is None:
            raise ConfigurationMissing("polygon_api_key")
        try:
            trade = self.client.get_last_trade(ticker=ticker)
        except PolygonAPIError as exc:
            raise _translate(self.source_id, exc) from exc
        except ValueError as exc:
            raise InvalidResponse(self.source_id.value, str(exc)) from exc
        return validate_price(self.source_id, trade.price)


__all__ = ["FinnhubQuoteSource", "PolygonQuoteSource", "QuoteSource", "validate_price"]
