from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable

from .assets import AssetId
from .normalization import NormalizedAsset

HUNDRED = Decimal("100")


@dataclass(frozen=True)
class AssetValuation:
    asset_id: AssetId
    ticker: str
    quantity: Decimal
    effective_price_usd: Decimal
    cost_basis_usd: Decimal
    market_value_usd: Decimal
    pnl_usd: Decimal
    pnl_percent: Decimal
    portfolio_share: Decimal
    is_frozen: bool
    flagged: bool


def value_holding(normalized: NormalizedAsset, *, portfolio_total: Decimal | None = None) -> AssetValuation:
    asset = normalized.asset
    cost_basis = normalized.cost_basis_usd
    market_value = normalized.effective_value_usd
    pnl = market_value - cost_basis
    pnl_percent = pnl / cost_basis * HUNDRED if cost_basis > 0 else Decimal("0")
    share = market_value / portfolio_total * HUNDRED if portfolio_total else Decimal("0")
    return AssetValuation(
        asset_id=asset.id,
        ticker=asset.ticker,
        quantity=asset.quantity,
        effective_price_usd=normalized.current_price_usd.value,
        cost_basis_usd=cost_basis,
        market_value_usd=market_value,
        pnl_usd=pnl,
        pnl_percent=pnl_percent,
        portfolio_share=share,
        is_frozen=asset.is_frozen,
        flagged=normalized.purchase_price_usd.flagged or normalized.current_price_usd.flagged,
    )


def value_portfolio(holdings: Iterable[NormalizedAsset]) -> list[AssetValuation]:
    """Value every open holding; closed positions (quantity 0) are left out."""
    open_holdings = [holding for holding in holdings if holding.asset.quantity > 0]
    total = sum((holding.effective_value_usd for holding in open_holdings), Decimal("0"))
    return [value_holding(holding, portfolio_total=total) for holding in open_holdings]


__all__ = ["AssetValuation", "value_holding", "value_portfolio"]
