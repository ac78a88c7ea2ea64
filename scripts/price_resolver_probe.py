# flake8: noqa E402
# Run via uv for access to project deps, e.g.:
# uv run scripts/price_resolver_probe.py --ticker AAPL --ticker BIMBOA.MX --repeat 2
from __future__ import annotations

import argparse
import asyncio
import sys
from pathlib import Path
from time import perf_counter

# Ensure the src directory is importable when the script is invoked via uv/python directly.
PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_DIR = PROJECT_ROOT / "src"
if str(SRC_DIR) not in sys.path:
    sys.path.insert(0, str(SRC_DIR))

from config import config
from domain.errors import NoPriceAvailable
from domain.market import PriceSourceId
from services.market_data import build_market_data


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description="Probe PriceResolver caching, failover and rate limiting.")
    parser.add_argument(
        "--ticker",
        action="append",
        dest="tickers",
        help="Ticker to resolve. Can be repeated; defaults to AAPL and MSFT.",
    )
    parser.add_argument("--preferred", type=PriceSourceId, default=PriceSourceId.FINNHUB)
    parser.add_argument("--repeat", type=int, default=2, help="Rounds over the ticker list (default: 2).")
    parser.add_argument("--rate", action="store_true", help="Also resolve the MXN/USD rate each round.")
    return parser.parse_args()


async def probe(tickers: list[str], *, preferred: PriceSourceId, repeat: int, with_rate: bool) -> None:
    market_data = build_market_data(config())
    for round_no in range(1, repeat + 1):
        for ticker in tickers:
            start = perf_counter()
            try:
                resolved = await market_data.price_resolver.resolve_price(ticker, preferred)
            except NoPriceAvailable as exc:
                print(f"[round {round_no}] {ticker}: no price {exc.reasons}")
                continue
            status = "cache-hit" if resolved.cached else f"fetched via {resolved.source.value}"
            print(f"[round {round_no}] {ticker} => {resolved.price} ({status}, {perf_counter() - start:.3f}s)")

        if with_rate:
            record = await market_data.rate_resolver.resolve_rate()
            print(f"[round {round_no}] MXN/USD => {record.rate} ({record.source.value}, {record.as_of_date})")

    for provider_id, lane in market_data.dispatcher.status().items():
        print(f"[dispatcher] {provider_id}: interval {lane['interval_seconds']:.1f}s, queued {lane['queue_length']}")


def main() -> None:
    args = parse_args()
    tickers = args.tickers or ["AAPL", "MSFT"]
    asyncio.run(probe(tickers, preferred=args.preferred, repeat=args.repeat, with_rate=args.rate))


if __name__ == "__main__":
    main()
