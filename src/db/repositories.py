from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any
from uuid import UUID

from sqlalchemy.orm import Session

from db import models
from domain.assets import Asset, AssetId, FrozenPrice, LivePrice
from domain.errors import AssetNotFound
from domain.ledger import AssetLedger
from domain.market import Currency

logger = logging.getLogger(__name__)

# Fields the pricing engine is allowed to touch through update_asset().
UPDATABLE_FIELDS = frozenset(
    {"purchase_price_usd", "current_price_usd", "price_state", "last_updated"}
)


class AssetRepository(AssetLedger):
    def __init__(self, session: Session) -> None:
        self._session = session

    def create(self, asset: Asset) -> Asset:
        orm_asset = models.AssetOrm(id=asset.id)
        self._apply(orm_asset, asset)
        self._session.add(orm_asset)
        self._session.commit()
        self._session.refresh(orm_asset)
        return self._to_domain(orm_asset)

    def get(self, asset_id: UUID) -> Asset | None:
        orm_asset = self._session.get(models.AssetOrm, asset_id)
        if orm_asset is None:
            return None
        return self._to_domain(orm_asset)

    def get_asset(self, asset_id: AssetId) -> Asset:
        asset = self.get(asset_id)
        if asset is None:
            raise AssetNotFound(asset_id)
        return asset

    def list(self) -> list[Asset]:
        orm_assets = self._session.query(models.AssetOrm).order_by(models.AssetOrm.ticker.asc()).all()
        return [self._to_domain(orm_asset) for orm_asset in orm_assets]

    def list_assets(self) -> list[Asset]:
        return self.list()

    def list_tracked_tickers(self) -> list[str]:
        return sorted({asset.ticker for asset in self.list() if asset.quantity > 0})

    def update_asset(self, asset_id: AssetId, **fields: Any) -> Asset:
        unknown = set(fields) - UPDATABLE_FIELDS
        if unknown:
            msg = f"Fields not updatable through the ledger: {sorted(unknown)}"
            raise ValueError(msg)

        orm_asset = self._session.get(models.AssetOrm, asset_id)
        if orm_asset is None:
            raise AssetNotFound(asset_id)

        current = self._to_domain(orm_asset)
        updated = Asset.model_validate({**current.model_dump(), **fields})
        self._apply(orm_asset, updated)
        self._session.commit()
        self._session.refresh(orm_asset)
        return self._to_domain(orm_asset)

    def delete(self, asset_id: AssetId) -> None:
        orm_asset = self._session.get(models.AssetOrm, asset_id)
        if orm_asset is None:
            raise AssetNotFound(asset_id)
        self._session.delete(orm_asset)
        self._session.commit()

    @staticmethod
    def _apply(orm_asset: models.AssetOrm, asset: Asset) -> None:
        orm_asset.ticker = asset.ticker
        orm_asset.quantity = asset.quantity
        orm_asset.purchase_price_usd = asset.purchase_price_usd
        orm_asset.original_currency = asset.original_currency.value
        orm_asset.original_purchase_price = asset.original_purchase_price
        orm_asset.current_price_usd = asset.current_price_usd
        orm_asset.purchase_date = asset.purchase_date
        orm_asset.last_updated = asset.last_updated

        state = asset.price_state
        if isinstance(state, FrozenPrice):
            orm_asset.is_frozen = True
            orm_asset.frozen_price_usd = state.price_usd
            orm_asset.frozen_at = state.frozen_at
            orm_asset.frozen_source = state.source
        else:
            orm_asset.is_frozen = False
            orm_asset.frozen_price_usd = None
            orm_asset.frozen_at = None
            orm_asset.frozen_source = None

    @staticmethod
    def _to_domain(orm_asset: models.AssetOrm) -> Asset:
        state: LivePrice | FrozenPrice = LivePrice()
        if orm_asset.is_frozen:
            if (
                orm_asset.frozen_price_usd is None
                or orm_asset.frozen_at is None
                or not orm_asset.frozen_source
            ):
                logger.warning("Asset %s is marked frozen without a complete frozen price; treating as live", orm_asset.id)
            else:
                state = FrozenPrice(
                    price_usd=orm_asset.frozen_price_usd,
                    frozen_at=_as_utc(orm_asset.frozen_at),
                    source=orm_asset.frozen_source,
                )

        return Asset(
            id=AssetId(orm_asset.id),
            ticker=orm_asset.ticker,
            quantity=orm_asset.quantity,
            purchase_price_usd=orm_asset.purchase_price_usd,
            original_currency=Currency(orm_asset.original_currency),
            original_purchase_price=orm_asset.original_purchase_price,
            current_price_usd=orm_asset.current_price_usd,
            price_state=state,
            purchase_date=orm_asset.purchase_date,
            last_updated=_as_utc(orm_asset.last_updated) if orm_asset.last_updated is not None else None,
        )


def _as_utc(value: datetime) -> datetime:
    # SQLite drops tzinfo on the way back.
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


__all__ = ["AssetRepository", "UPDATABLE_FIELDS"]
