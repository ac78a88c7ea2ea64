from __future__ import annotations

import asyncio
import logging
from datetime import timedelta
from decimal import Decimal
from functools import partial
from typing import Iterable

from domain.errors import MarketDataError, NoPriceAvailable
from domain.market import PriceSourceId, Quote, ResolvedQuote, normalize_ticker

from .dispatcher import RateLimitedDispatcher
from .quote_sources import QuoteSource, validate_price
from .ttl_cache import Clock, TtlCache, utc_now

logger = logging.getLogger(__name__)

DEFAULT_PRICE_TTL = timedelta(seconds=60)
DEFAULT_BATCH_CONCURRENCY = 6
MAX_BATCH_CONCURRENCY = 12


class PriceResolver:
    """Current price per ticker: cache, then preferred provider, then exactly one fallback."""

    def __init__(
        self,
        *,
        sources: Iterable[QuoteSource],
        dispatcher: RateLimitedDispatcher,
        cache: TtlCache[Quote] | None = None,
        clock: Clock = utc_now,
    ) -> None:
        self._sources = {source.source_id: source for source in sources}
        missing = set(PriceSourceId) - set(self._sources)
        if missing:
            msg = f"Missing quote sources: {sorted(s.value for s in missing)}"
            raise ValueError(msg)
        self._dispatcher = dispatcher
        self._clock = clock
        self.cache: TtlCache[Quote] = cache or TtlCache(default_ttl=DEFAULT_PRICE_TTL, clock=clock)

    async def resolve_price(
        self,
        ticker: str,
        preferred: PriceSourceId = PriceSourceId.FINNHUB,
        *,
        ttl: timedelta | None = None,
    ) -> ResolvedQuote:
        key = self._require_ticker(ticker)

        entry = self.cache.get(key)
        if entry is not None:
            return ResolvedQuote(quote=entry.value, cached=True)

        reasons: dict[str, str] = {}
        for source_id in (preferred, preferred.alternate):
            try:
                price = await self.fetch_from(key, source_id)
            except MarketDataError as exc:
                reasons[source_id.value] = str(exc)
                logger.warning("Price lookup for %s via %s failed: %s", key, source_id.value, exc)
                continue

            quote = Quote(ticker=key, price=price, source=source_id, resolved_at=self._clock())
            self.cache.put(key, quote, source=source_id.value, ttl=ttl)
            return ResolvedQuote(quote=quote, cached=False)

        raise NoPriceAvailable(key, reasons)

    async def fetch_from(self, ticker: str, source_id: PriceSourceId) -> Decimal:
        """Single-provider lookup through the rate limiter; no cache, no fallback."""
        key = self._require_ticker(ticker)
        source = self._sources[source_id]
        price = await self._dispatcher.enqueue(source_id.value, partial(source.fetch_price, key))
        return validate_price(source_id, price)

    async def resolve_many(
        self,
        tickers: Iterable[str],
        preferred: PriceSourceId = PriceSourceId.FINNHUB,
        *,
        ttl: timedelta | None = None,
        concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> dict[str, ResolvedQuote]:
        """Resolve a batch of tickers; tickers without a price are left out of the result."""
        unique = list(dict.fromkeys(key for key in (normalize_ticker(t) for t in tickers) if key))
        limit = asyncio.Semaphore(max(1, min(concurrency, MAX_BATCH_CONCURRENCY)))
        results: dict[str, ResolvedQuote] = {}

        async def _one(key: str) -> None:
            async with limit:
                try:
                    results[key] = await self.resolve_price(key, preferred, ttl=ttl)
                except NoPriceAvailable as exc:
                    logger.warning("No price for %s: %s", key, exc.reasons)

        await asyncio.gather(*(_one(key) for key in unique))
        return results

    def clear_cache(self) -> None:
        self.cache.clear()

    @staticmethod
    def _require_ticker(ticker: str) -> str:
        key = normalize_ticker(ticker)
        if not key:
            msg = "ticker must be provided"
            raise ValueError(msg)
        return key


__all__ = ["PriceResolver"]
