from __future__ import annotations

from typing import Sequence

from domain.market import ExchangeRateRecord
from domain.valuation import AssetValuation
from services.portfolio_service import PriceUpdateResult

from .formatting import format_percent, format_quantity, format_rate, format_usd


def render_refresh_results(results: Sequence[PriceUpdateResult]) -> None:
    print("Price refresh:")
    if not results:
        print("  (no tracked tickers)")
        return

    ticker_width = max(len("Ticker"), max(len(result.ticker) for result in results))
    for result in results:
        if result.success and result.new_price_usd is not None:
            origin = "cache" if result.cached else result.source
            print(f"  {result.ticker:<{ticker_width}} {format_usd(result.new_price_usd):>14} ({origin})")
        else:
            print(f"  {result.ticker:<{ticker_width}} {'-':>14} {result.error}")

    updated = sum(1 for result in results if result.success)
    print(f"  {updated}/{len(results)} tickers updated")


def render_exchange_rate(record: ExchangeRateRecord) -> None:
    print(f"MXN per USD: {format_rate(record.rate)} ({record.source.value}, {record.as_of_date.isoformat()})")


def render_valuation_summary(valuations: Sequence[AssetValuation]) -> None:
    print("Portfolio valuation:")
    if not valuations:
        print("  (empty)")
        return

    labels = ("Ticker", "Quantity", "Price USD", "Value USD", "P&L", "Share")
    rows: list[tuple[str, ...]] = []
    for valuation in valuations:
        ticker = f"{valuation.ticker}*" if valuation.is_frozen else valuation.ticker
        if valuation.flagged:
            ticker = f"{ticker} (!)"
        rows.append(
            (
                ticker,
                format_quantity(valuation.quantity),
                format_usd(valuation.effective_price_usd),
                format_usd(valuation.market_value_usd),
                format_percent(valuation.pnl_percent),
                format_percent(valuation.portfolio_share).lstrip("+"),
            )
        )

    widths = [max(len(label), max(len(row[i]) for row in rows)) for i, label in enumerate(labels)]
    header = " ".join(
        f"{label:<{widths[i]}}" if i == 0 else f"{label:>{widths[i]}}" for i, label in enumerate(labels)
    )
    lines = [header, "-" * len(header)]
    for row in rows:
        lines.append(
            " ".join(f"{cell:<{widths[i]}}" if i == 0 else f"{cell:>{widths[i]}}" for i, cell in enumerate(row))
        )
    lines.append("-" * len(header))
    lines.append("* frozen price   (!) suspicious value left uncorrected")
    print("\n".join(lines))
