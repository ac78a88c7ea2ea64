from __future__ import annotations

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Annotated, Literal, NewType
from uuid import UUID, uuid4

from pydantic import BaseModel, Field, model_validator

from .errors import InvalidPriceStateTransition
from .market import Currency

AssetId = NewType("AssetId", UUID)


class LivePrice(BaseModel):
    state: Literal["live"] = "live"


class FrozenPrice(BaseModel):
    """User-pinned valuation, kept with its provenance until explicitly released."""

    state: Literal["frozen"] = "frozen"
    price_usd: Decimal
    frozen_at: datetime
    source: str

    @model_validator(mode="after")
    def _validate_price(self) -> FrozenPrice:
        if self.price_usd <= 0:
            raise ValueError("frozen price must be > 0")
        if not self.source:
            raise ValueError("frozen source must be non-empty")
        return self


PriceState = Annotated[LivePrice | FrozenPrice, Field(discriminator="state")]


class Asset(BaseModel):
    """A holding as seen by the pricing engine.

    ``purchase_price_usd`` and ``current_price_usd`` are always USD. The
    user-entered amount survives in ``original_currency``/``original_purchase_price``.
    """

    id: AssetId = Field(default_factory=lambda: AssetId(uuid4()))
    ticker: str
    quantity: Decimal
    purchase_price_usd: Decimal
    original_currency: Currency = Currency.USD
    original_purchase_price: Decimal
    current_price_usd: Decimal
    price_state: PriceState = Field(default_factory=LivePrice)
    purchase_date: date | None = None
    last_updated: datetime | None = None

    @model_validator(mode="after")
    def _validate_fields(self) -> Asset:
        if not self.ticker.strip():
            raise ValueError("Asset.ticker must be non-empty")
        if self.quantity < 0:
            raise ValueError("Asset.quantity must be >= 0")
        return self

    @property
    def is_frozen(self) -> bool:
        return isinstance(self.price_state, FrozenPrice)

    @property
    def frozen_price_usd(self) -> Decimal | None:
        if isinstance(self.price_state, FrozenPrice):
            return self.price_state.price_usd
        return None

    @property
    def effective_price_usd(self) -> Decimal:
        """Price every valuation must use: the frozen one wins while it exists."""
        if isinstance(self.price_state, FrozenPrice):
            return self.price_state.price_usd
        return self.current_price_usd


def effective_price(asset: Asset) -> Decimal:
    return asset.effective_price_usd


def freeze(asset: Asset, price: Decimal, source: str, *, at: datetime | None = None) -> Asset:
    if asset.is_frozen:
        raise InvalidPriceStateTransition(f"Asset {asset.id} ({asset.ticker}) is already frozen")
    state = FrozenPrice(price_usd=price, frozen_at=at or datetime.now(timezone.utc), source=source)
    return asset.model_copy(update={"price_state": state})


def unfreeze(asset: Asset) -> Asset:
    if not asset.is_frozen:
        raise InvalidPriceStateTransition(f"Asset {asset.id} ({asset.ticker}) is not frozen")
    return asset.model_copy(update={"price_state": LivePrice()})


def with_current_price(asset: Asset, price: Decimal, *, at: datetime | None = None) -> Asset:
    # The live price keeps moving underneath a freeze; only effective_price_usd hides it.
    if price <= 0:
        raise ValueError("current price must be > 0")
    return asset.model_copy(
        update={"current_price_usd": price, "last_updated": at or datetime.now(timezone.utc)}
    )


__all__ = [
    "Asset",
    "AssetId",
    "FrozenPrice",
    "LivePrice",
    "PriceState",
    "effective_price",
    "freeze",
    "unfreeze",
    "with_current_price",
]
