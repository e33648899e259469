from __future__ import annotations

from cmms.domain.errors import NotFoundError
from cmms.domain.models import AssetRead, InventoryItemRead, ScanResultRead, ScanResultType
from cmms.services.asset_service import AssetService
from cmms.services.inventory_service import InventoryService


class ScanService:
    """Resolve a scanned barcode, assets first, then inventory items."""

    def __init__(
        self,
        asset_service: AssetService | None = None,
        inventory_service: InventoryService | None = None,
    ) -> None:
        self._assets = asset_service or AssetService()
        self._inventory = inventory_service or InventoryService()

    def lookup(self, barcode: str) -> ScanResultRead:
        code = barcode.strip()
        asset = self._assets.find_by_barcode(code)
        if asset is not None:
            return ScanResultRead(type=ScanResultType.ASSET, item=AssetRead.model_validate(asset))
        item = self._inventory.find_by_barcode(code)
        if item is not None:
            return ScanResultRead(type=ScanResultType.INVENTORY_ITEM, item=InventoryItemRead.model_validate(item))
        raise NotFoundError("barcode", code)
