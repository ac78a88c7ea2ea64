from __future__ import annotations

import argparse
import asyncio
import logging
from datetime import date, timedelta
from typing import Sequence

from config import config
from db.db import init_db
from db.repositories import AssetRepository
from domain.errors import NoPriceAvailable
from domain.market import PriceSourceId
from services.market_data import MarketData, build_market_data
from services.portfolio_service import PortfolioService
from utils.formatting import format_usd
from utils.portfolio_summary import render_exchange_rate, render_refresh_results, render_valuation_summary


def build_portfolio_service(market_data: MarketData) -> PortfolioService:
    settings = config()
    session = init_db(settings.db_file)
    return PortfolioService(
        ledger=AssetRepository(session),
        price_resolver=market_data.price_resolver,
        rate_resolver=market_data.rate_resolver,
        normalizer=market_data.normalizer,
        min_refresh_interval=timedelta(seconds=settings.min_refresh_interval_seconds),
    )


async def run_refresh(market_data: MarketData, *, preferred: PriceSourceId, repair: bool) -> None:
    portfolio = build_portfolio_service(market_data)
    if repair:
        repaired = await portfolio.repair_stored_prices()
        print(f"Repaired {len(repaired)} holdings with MXN-denominated prices")
    # An explicit command is a manual refresh and skips the throttle.
    results = await portfolio.refresh_prices(preferred, force=True)
    render_refresh_results(results)
    render_valuation_summary(await portfolio.valuate_all())


async def run_rate(market_data: MarketData, *, as_of: date | None) -> None:
    record = await market_data.rate_resolver.resolve_rate(as_of=as_of)
    render_exchange_rate(record)


async def run_quote(market_data: MarketData, tickers: Sequence[str], *, preferred: PriceSourceId) -> int:
    failures = 0
    for ticker in tickers:
        try:
            resolved = await market_data.price_resolver.resolve_price(ticker, preferred)
        except NoPriceAvailable as exc:
            failures += 1
            print(f"{exc.ticker}: no price ({'; '.join(f'{k}: {v}' for k, v in exc.reasons.items())})")
            continue
        print(f"{resolved.quote.ticker}: {format_usd(resolved.price)} via {resolved.source.value}")
    return 1 if failures else 0


def main(argv: Sequence[str] | None = None) -> int:
    logging.basicConfig(level=logging.INFO, format="%(asctime)s %(levelname)s %(name)s %(message)s")
    parser = argparse.ArgumentParser(description="Resolve market prices and MXN/USD rates for tracked holdings.")
    parser.add_argument(
        "--preferred",
        type=PriceSourceId,
        choices=list(PriceSourceId),
        default=PriceSourceId.FINNHUB,
        help="Quote provider tried first (default: finnhub).",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    refresh_parser = subparsers.add_parser("refresh", help="Refresh stored prices for every tracked ticker.")
    refresh_parser.add_argument(
        "--repair",
        action="store_true",
        help="Rewrite stored prices that look MXN-denominated before refreshing.",
    )

    rate_parser = subparsers.add_parser("rate", help="Print the MXN per USD rate.")
    rate_parser.add_argument("--as-of", type=date.fromisoformat, default=None, help="Date (YYYY-MM-DD).")

    quote_parser = subparsers.add_parser("quote", help="Resolve current prices for the given tickers.")
    quote_parser.add_argument("tickers", nargs="+")

    args = parser.parse_args(argv)
    market_data = build_market_data(config())

    if args.command == "refresh":
        asyncio.run(run_refresh(market_data, preferred=args.preferred, repair=args.repair))
        return 0
    if args.command == "rate":
        asyncio.run(run_rate(market_data, as_of=args.as_of))
        return 0
    return asyncio.run(run_quote(market_data, args.tickers, preferred=args.preferred))


if __name__ == "__main__":
    raise SystemExit(main())
