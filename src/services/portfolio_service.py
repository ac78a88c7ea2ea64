from __future__ import annotations

import logging
from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timedelta
from decimal import Decimal

from domain.assets import Asset, AssetId, freeze, unfreeze, with_current_price
from domain.ledger import AssetLedger
from domain.market import Currency, PriceSourceId, normalize_ticker
from domain.normalization import CurrencyNormalizer, mxn_to_usd
from domain.valuation import AssetValuation, value_holding, value_portfolio

from .exchange_rate_resolver import ExchangeRateResolver
from .price_resolver import DEFAULT_BATCH_CONCURRENCY, PriceResolver
from .ttl_cache import Clock, utc_now

logger = logging.getLogger(__name__)

DEFAULT_MIN_REFRESH_INTERVAL = timedelta(minutes=5)


@dataclass(frozen=True)
class PriceUpdateResult:
    ticker: str
    success: bool
    new_price_usd: Decimal | None = None
    source: PriceSourceId | None = None
    cached: bool = False
    error: str | None = None


class PortfolioService:
    """Applies resolved prices and rates to the holdings kept by the ledger."""

    def __init__(
        self,
        *,
        ledger: AssetLedger,
        price_resolver: PriceResolver,
        rate_resolver: ExchangeRateResolver,
        normalizer: CurrencyNormalizer | None = None,
        min_refresh_interval: timedelta = DEFAULT_MIN_REFRESH_INTERVAL,
        clock: Clock = utc_now,
    ) -> None:
        self._ledger = ledger
        self._prices = price_resolver
        self._rates = rate_resolver
        self._normalizer = normalizer or CurrencyNormalizer()
        self._min_refresh_interval = min_refresh_interval
        self._clock = clock
        self._refreshing = False
        self.last_refresh_at: datetime | None = None

    @property
    def can_refresh(self) -> bool:
        if self._refreshing:
            return False
        if self.last_refresh_at is None:
            return True
        return self._clock() - self.last_refresh_at >= self._min_refresh_interval

    async def refresh_prices(
        self,
        preferred: PriceSourceId = PriceSourceId.FINNHUB,
        *,
        force: bool = False,
        concurrency: int = DEFAULT_BATCH_CONCURRENCY,
    ) -> list[PriceUpdateResult]:
        """Resolve every tracked ticker and store the new USD price on its holdings.

        A ticker without a price keeps its last stored value. Frozen holdings
        are refreshed too; the freeze only changes what valuations read.
        Without ``force``, a refresh within ``min_refresh_interval`` of the
        previous one (or during one) is skipped and returns no results.
        """
        if not force and not self.can_refresh:
            logger.info("Price refresh skipped: last run at %s", self.last_refresh_at)
            return []

        tickers = [normalize_ticker(t) for t in self._ledger.list_tracked_tickers()]
        if not tickers:
            return []

        self._refreshing = True
        try:
            results = await self._refresh(tickers, preferred, concurrency)
        finally:
            self._refreshing = False
        self.last_refresh_at = self._clock()

        updated = sum(1 for result in results if result.success)
        logger.info("Price refresh finished: %d/%d tickers updated", updated, len(results))
        return results

    async def _refresh(
        self, tickers: list[str], preferred: PriceSourceId, concurrency: int
    ) -> list[PriceUpdateResult]:
        holdings: dict[str, list[Asset]] = defaultdict(list)
        for asset in self._ledger.list_assets():
            holdings[normalize_ticker(asset.ticker)].append(asset)

        quotes = await self._prices.resolve_many(tickers, preferred, concurrency=concurrency)

        now = self._clock()
        results: list[PriceUpdateResult] = []
        for ticker in tickers:
            resolved = quotes.get(ticker)
            if resolved is None:
                results.append(PriceUpdateResult(ticker=ticker, success=False, error="No price available"))
                continue

            for asset in holdings[ticker]:
                moved = with_current_price(asset, resolved.price, at=now)
                self._ledger.update_asset(
                    asset.id, current_price_usd=moved.current_price_usd, last_updated=moved.last_updated
                )

            results.append(
                PriceUpdateResult(
                    ticker=ticker,
                    success=True,
                    new_price_usd=resolved.price,
                    source=resolved.source,
                    cached=resolved.cached,
                )
            )
        return results

    def freeze_asset(self, asset_id: AssetId, price: Decimal, source: str) -> Asset:
        asset = self._ledger.get_asset(asset_id)
        frozen = freeze(asset, price, source, at=self._clock())
        logger.info("Froze %s at %s (source: %s)", asset.ticker, price, source)
        return self._ledger.update_asset(asset_id, price_state=frozen.price_state)

    def unfreeze_asset(self, asset_id: AssetId) -> Asset:
        asset = self._ledger.get_asset(asset_id)
        live = unfreeze(asset)
        logger.info("Unfroze %s; live price %s is effective again", asset.ticker, live.current_price_usd)
        return self._ledger.update_asset(asset_id, price_state=live.price_state)

    async def prepare_entry(
        self,
        *,
        ticker: str,
        quantity: Decimal,
        purchase_price: Decimal,
        currency: Currency,
        purchase_date: date | None = None,
    ) -> Asset:
        """Build a USD-denominated holding for the ledger to store.

        MXN purchase prices are converted once, with the rate as of the
        purchase date; the entered amount is kept as the original price.
        """
        purchase_price_usd = purchase_price
        if currency is Currency.MXN:
            record = await self._rates.resolve_rate(as_of=purchase_date)
            purchase_price_usd = mxn_to_usd(purchase_price, record.rate)
            logger.info(
                "Converted %s purchase price %s MXN at %s (%s, %s)",
                ticker,
                purchase_price,
                record.rate,
                record.source.value,
                record.as_of_date,
            )
        return Asset(
            ticker=normalize_ticker(ticker),
            quantity=quantity,
            purchase_price_usd=purchase_price_usd,
            original_currency=currency,
            original_purchase_price=purchase_price,
            current_price_usd=purchase_price_usd,
            purchase_date=purchase_date,
            last_updated=self._clock(),
        )

    async def valuate(self, asset_id: AssetId) -> AssetValuation:
        asset = self._ledger.get_asset(asset_id)
        rate = await self._rates.resolve_rate()
        return value_holding(self._normalizer.normalize(asset, rate.rate))

    async def valuate_all(self) -> list[AssetValuation]:
        rate = await self._rates.resolve_rate()
        return value_portfolio(self._normalizer.normalize(asset, rate.rate) for asset in self._ledger.list_assets())

    async def repair_stored_prices(self) -> list[Asset]:
        """Persist USD corrections for holdings whose stored prices look like MXN."""
        rate = await self._rates.resolve_rate()
        repaired: list[Asset] = []
        for asset in self._ledger.list_assets():
            fixed = self._normalizer.repair(asset, rate.rate)
            if fixed is asset:
                continue
            repaired.append(
                self._ledger.update_asset(
                    asset.id,
                    purchase_price_usd=fixed.purchase_price_usd,
                    current_price_usd=fixed.current_price_usd,
                )
            )
        if repaired:
            logger.info("Repaired stored prices for %d holdings", len(repaired))
        return repaired


__all__ = ["DEFAULT_MIN_REFRESH_INTERVAL", "PortfolioService", "PriceUpdateResult"]
