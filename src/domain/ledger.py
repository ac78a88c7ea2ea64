from __future__ import annotations

from typing import Any, Protocol

from .assets import Asset, AssetId


class AssetLedger(Protocol):
    """Persistence boundary owned by the holdings ledger.

    The pricing engine reads holdings and writes price-related fields only; it
    never creates or deletes assets through this interface.
    """

    def list_tracked_tickers(self) -> list[str]: ...

    def list_assets(self) -> list[Asset]: ...

    def get_asset(self, asset_id: AssetId) -> Asset: ...

    def update_asset(self, asset_id: AssetId, **fields: Any) -> Asset: ...
