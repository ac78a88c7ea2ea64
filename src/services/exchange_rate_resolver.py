from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import date, timedelta
from decimal import Decimal
from functools import partial

from domain.errors import ConfigurationMissing, InvalidResponse, MarketDataError, NotFoundForDate, UnsupportedPair
from domain.market import MXN_USD, Currency, ExchangeRateRecord, RateSource

from .banxico_client import BanxicoAPIError, BanxicoClient, SeriesObservation
from .dispatcher import RateLimitedDispatcher
from .ttl_cache import Clock, TtlCache, utc_now

logger = logging.getLogger(__name__)

BANXICO_PROVIDER_ID = "banxico"
DEFAULT_RATE_TTL = timedelta(hours=1)
DEFAULT_FALLBACK_RATE = Decimal("20.0")
MAX_LOOKUP_ATTEMPTS = 7


@dataclass(frozen=True)
class _Ok:
    observation: SeriesObservation


@dataclass(frozen=True)
class _Retry:
    reason: MarketDataError


@dataclass(frozen=True)
class _Fail:
    reason: Exception


_Attempt = _Ok | _Retry | _Fail


class ExchangeRateResolver:
    """MXN per USD from Banxico's FIX series, walking back over non-banking days.

    Any failure that is not "no data for this date" ends the walk and yields
    the fixed fallback rate, which is a documented last resort.
    """

    def __init__(
        self,
        *,
        client: BanxicoClient | None,
        dispatcher: RateLimitedDispatcher,
        cache: TtlCache[ExchangeRateRecord] | None = None,
        fallback_rate: Decimal = DEFAULT_FALLBACK_RATE,
        clock: Clock = utc_now,
    ) -> None:
        if fallback_rate <= 1:
            msg = "fallback_rate must be > 1"
            raise ValueError(msg)
        self.client = client
        self._dispatcher = dispatcher
        self._clock = clock
        self.fallback_rate = fallback_rate
        self.cache: TtlCache[ExchangeRateRecord] = cache or TtlCache(default_ttl=DEFAULT_RATE_TTL, clock=clock)

    async def resolve_rate(
        self,
        from_currency: str = Currency.MXN,
        to_currency: str = Currency.USD,
        *,
        as_of: date | None = None,
    ) -> ExchangeRateRecord:
        base = from_currency.strip().upper()
        quote = to_currency.strip().upper()
        if (base, quote) != (Currency.MXN, Currency.USD):
            raise UnsupportedPair(base, quote)

        start = as_of or self._clock().date()
        key = MXN_USD if as_of is None else f"{MXN_USD}@{as_of.isoformat()}"

        entry = self.cache.get(key)
        if entry is not None:
            return replace(entry.value, source=RateSource.CACHE)

        if self.client is None:
            logger.warning("Using fallback exchange rate: %s", ConfigurationMissing("banxico_api_token"))
            return self._fallback(start)

        for offset in range(MAX_LOOKUP_ATTEMPTS):
            target = start - timedelta(days=offset)
            outcome = await self._attempt(self.client, target)
            if isinstance(outcome, _Ok):
                record = ExchangeRateRecord(
                    pair=MXN_USD,
                    rate=outcome.observation.value,
                    as_of_date=outcome.observation.date,
                    source=RateSource.CENTRAL_BANK,
                )
                self.cache.put(key, record, source=RateSource.CENTRAL_BANK.value)
                return record
            if isinstance(outcome, _Fail):
                logger.warning("Banxico lookup for %s failed, using fallback rate: %s", target, outcome.reason)
                return self._fallback(start)
            logger.debug("%s; trying the previous day", outcome.reason)

        logger.warning(
            "No Banxico observation in the %d days up to %s, using fallback rate", MAX_LOOKUP_ATTEMPTS, start
        )
        return self._fallback(start)

    async def _attempt(self, client: BanxicoClient, target: date) -> _Attempt:
        try:
            observation = await self._dispatcher.enqueue(
                BANXICO_PROVIDER_ID, partial(client.get_observation, target_date=target)
            )
        except BanxicoAPIError as exc:
            return _Fail(exc)
        except Exception as exc:
            logger.exception("Unexpected error from Banxico lookup for %s", target)
            return _Fail(InvalidResponse(BANXICO_PROVIDER_ID, f"unexpected error: {exc!r}"))
        if observation is None:
            return _Retry(NotFoundForDate(target))
        if not observation.value.is_finite() or observation.value <= 1:
            return _Fail(InvalidResponse(BANXICO_PROVIDER_ID, f"implausible MXN/USD rate {observation.value}"))
        return _Ok(observation)

    def _fallback(self, as_of: date) -> ExchangeRateRecord:
        # Never cached, so the next call tries the central bank again.
        return ExchangeRateRecord(pair=MXN_USD, rate=self.fallback_rate, as_of_date=as_of, source=RateSource.FALLBACK)


__all__ = ["BANXICO_PROVIDER_ID", "ExchangeRateResolver", "MAX_LOOKUP_ATTEMPTS"]
