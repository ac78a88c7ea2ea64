from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import timedelta

import requests

from config import AppSettings
from domain.market import ExchangeRateRecord, PriceSourceId, Quote
from domain.normalization import CurrencyNormalizer

from .banxico_client import BanxicoClient
from .dispatcher import RateLimitedDispatcher
from .exchange_rate_resolver import BANXICO_PROVIDER_ID, ExchangeRateResolver
from .finnhub_client import FinnhubClient
from .polygon_client import PolygonClient
from .price_resolver import PriceResolver
from .quote_sources import FinnhubQuoteSource, PolygonQuoteSource
from .ttl_cache import TtlCache

logger = logging.getLogger(__name__)


@dataclass
class MarketData:
    """Process-wide components; build once and share by reference."""

    dispatcher: RateLimitedDispatcher
    price_resolver: PriceResolver
    rate_resolver: ExchangeRateResolver
    normalizer: CurrencyNormalizer


def build_dispatcher(settings: AppSettings) -> RateLimitedDispatcher:
    dispatcher = RateLimitedDispatcher()
    dispatcher.register(PriceSourceId.FINNHUB.value, requests_per_minute=settings.finnhub_requests_per_minute)
    dispatcher.register(PriceSourceId.POLYGON.value, requests_per_minute=settings.polygon_requests_per_minute)
    dispatcher.register(BANXICO_PROVIDER_ID, requests_per_minute=settings.banxico_requests_per_minute)
    return dispatcher


def build_market_data(settings: AppSettings, *, session: requests.Session | None = None) -> MarketData:
    http = session or requests.Session()
    timeout = settings.http_timeout_seconds

    finnhub = None
    if settings.finnhub_api_key:
        finnhub = FinnhubClient(api_key=settings.finnhub_api_key, timeout=timeout, session=http)
    polygon = None
    if settings.polygon_api_key:
        polygon = PolygonClient(api_key=settings.polygon_api_key, timeout=timeout, session=http)
    banxico = None
    if settings.banxico_api_token:
        banxico = BanxicoClient(token=settings.banxico_api_token, timeout=timeout, session=http)

    missing = [
        name
        for name, client in (("finnhub", finnhub), ("polygon", polygon), ("banxico", banxico))
        if client is None
    ]
    if missing:
        logger.warning("No credentials configured for: %s", ", ".join(missing))

    dispatcher = build_dispatcher(settings)
    price_resolver = PriceResolver(
        sources=[FinnhubQuoteSource(client=finnhub), PolygonQuoteSource(client=polygon)],
        dispatcher=dispatcher,
        cache=TtlCache[Quote](default_ttl=timedelta(seconds=settings.price_ttl_seconds)),
    )
    rate_resolver = ExchangeRateResolver(
        client=banxico,
        dispatcher=dispatcher,
        cache=TtlCache[ExchangeRateRecord](default_ttl=timedelta(seconds=settings.exchange_rate_ttl_seconds)),
        fallback_rate=settings.fallback_exchange_rate,
    )
    return MarketData(
        dispatcher=dispatcher,
        price_resolver=price_resolver,
        rate_resolver=rate_resolver,
        normalizer=CurrencyNormalizer(),
    )


__all__ = ["MarketData", "build_dispatcher", "build_market_data"]
