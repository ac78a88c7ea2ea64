"""USD normalization of stored asset prices.

Stored prices are supposed to be USD, but older records were sometimes saved
in MXN. A value above the per-ticker plausibility ceiling is taken to be
mis-stored MXN and divided by the current MXN/USD rate. The heuristic is
approximate: a legitimately expensive USD instrument missing from the table
will be "corrected" wrongly, so the table is a tunable policy and the whole
check stays behind ``CurrencyNormalizer``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Mapping

from .assets import Asset, effective_price
from .market import normalize_ticker

logger = logging.getLogger(__name__)

GLOBAL_DEFAULT_THRESHOLD = Decimal("200")
REGIONAL_DEFAULT_THRESHOLD = Decimal("1000")
REGIONAL_SUFFIXES = (".AS", ".SW", ".PA", ".L", ".MI", ".MC", ".F", ".DE", ".TO", ".HK", ".T")

# Ceilings for instruments that legitimately trade above the global default.
DEFAULT_THRESHOLDS: dict[str, Decimal] = {
    "BRK.A": Decimal("600000"),
    "NVR": Decimal("8500"),
    "AZO": Decimal("3500"),
    "BKNG": Decimal("4000"),
    "ASML": Decimal("950"),
    "ASML.AS": Decimal("950"),
    "NVDA": Decimal("1200"),
    "REGN": Decimal("1200"),
    "NFLX": Decimal("700"),
    "INTU": Decimal("700"),
    "UNH": Decimal("600"),
    "ADBE": Decimal("600"),
    "META": Decimal("550"),
    "ISRG": Decimal("500"),
    "VRTX": Decimal("500"),
    "SPY": Decimal("500"),
    "IVV": Decimal("500"),
    "MSFT": Decimal("450"),
    "GS": Decimal("450"),
    "QQQ": Decimal("450"),
    "VOO": Decimal("450"),
    "HD": Decimal("400"),
    "TSLA": Decimal("350"),
    "V": Decimal("300"),
    "CRM": Decimal("300"),
    "VTI": Decimal("280"),
}


@dataclass(frozen=True)
class SuspiciousThresholdTable:
    thresholds: Mapping[str, Decimal] = field(default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    global_default: Decimal = GLOBAL_DEFAULT_THRESHOLD
    regional_default: Decimal = REGIONAL_DEFAULT_THRESHOLD
    regional_suffixes: tuple[str, ...] = REGIONAL_SUFFIXES

    def threshold_for(self, ticker: str) -> Decimal:
        key = normalize_ticker(ticker)
        explicit = self.thresholds.get(key)
        if explicit is not None:
            return explicit
        if key.endswith(self.regional_suffixes):
            return self.regional_default
        return self.global_default


@dataclass(frozen=True)
class NormalizedAmount:
    value: Decimal
    corrected: bool = False
    # Set when the value looked suspicious but no usable rate was available.
    flagged: bool = False


@dataclass(frozen=True)
class NormalizedAsset:
    asset: Asset
    purchase_price_usd: NormalizedAmount
    current_price_usd: NormalizedAmount

    @property
    def effective_value_usd(self) -> Decimal:
        return self.current_price_usd.value * self.asset.quantity

    @property
    def cost_basis_usd(self) -> Decimal:
        return self.purchase_price_usd.value * self.asset.quantity

    @property
    def needs_repair(self) -> bool:
        return self.purchase_price_usd.corrected or self.current_price_usd.corrected


class CurrencyNormalizer:
    def __init__(self, table: SuspiciousThresholdTable | None = None) -> None:
        self.table = table or SuspiciousThresholdTable()

    def correct(self, value: Decimal, ticker: str, rate: Decimal | None) -> NormalizedAmount:
        threshold = self.table.threshold_for(ticker)
        if value <= threshold:
            return NormalizedAmount(value=value)
        if rate is None or rate <= 1:
            # Dividing by a rate <= 1 would inflate the value instead of correcting it.
            logger.warning(
                "Suspicious USD value %s for %s (threshold %s) left uncorrected: unusable rate %s",
                value,
                ticker,
                threshold,
                rate,
            )
            return NormalizedAmount(value=value, flagged=True)
        corrected = value / rate
        logger.info("Re-derived USD value for %s: %s / %s = %s", ticker, value, rate, corrected)
        return NormalizedAmount(value=corrected, corrected=True)

    def normalize(self, asset: Asset, rate: Decimal | None) -> NormalizedAsset:
        """Return USD figures for downstream aggregation.

        The current figure is the frozen price when one is pinned; either way it
        goes through the same ceiling check as the purchase price.
        """
        purchase = self.correct(asset.purchase_price_usd, asset.ticker, rate)
        current = self.correct(effective_price(asset), asset.ticker, rate)
        return NormalizedAsset(asset=asset, purchase_price_usd=purchase, current_price_usd=current)

    def effective_value(self, asset: Asset, rate: Decimal | None) -> Decimal:
        return self.normalize(asset, rate).effective_value_usd

    def repair(self, asset: Asset, rate: Decimal | None) -> Asset:
        """Rewrite stored USD fields that were saved in MXN.

        Re-running on a repaired asset is a no-op because corrected values
        fall back under the threshold.
        """
        purchase = self.correct(asset.purchase_price_usd, asset.ticker, rate)
        current = self.correct(asset.current_price_usd, asset.ticker, rate)
        if not (purchase.corrected or current.corrected):
            return asset
        return asset.model_copy(
            update={"purchase_price_usd": purchase.value, "current_price_usd": current.value}
        )


def mxn_to_usd(amount: Decimal, rate: Decimal) -> Decimal:
    if rate <= 1:
        raise ValueError(f"MXN per USD rate must be > 1, got {rate}")
    return amount / rate


__all__ = [
    "CurrencyNormalizer",
    "NormalizedAmount",
    "NormalizedAsset",
    "SuspiciousThresholdTable",
    "mxn_to_usd",
]
