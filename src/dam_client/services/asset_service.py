"""
Asset service for the DAM API.
Lists are cached per filter set; single assets per id.
"""

import logging
from typing import Iterator, Optional

from dam_client.schemas import (
    Asset,
    AssetFilters,
    AssetListItem,
    AssetStatus,
    AssetUpdate,
    Page,
)
from dam_client.services.base import BaseService, require_text

logger = logging.getLogger(__name__)

ASSETS_CACHE_PREFIX = ("assets",)


def asset_cache_key(asset_id: str) -> tuple:
    return ("asset", asset_id)


class AssetService(BaseService):
    """Service for browsing and editing assets"""

    def list_assets(self, filters: Optional[AssetFilters] = None) -> Page[AssetListItem]:
        """Get one page of assets matching ``filters``."""
        filters = filters or AssetFilters()
        return self.cache.get_or_fetch(
            ASSETS_CACHE_PREFIX + (filters.cache_key(),),
            lambda: Page[AssetListItem].model_validate(
                self.api.get("/api/assets/", params=filters.to_params())
            ),
        )

    def iter_assets(self, filters: Optional[AssetFilters] = None) -> Iterator[AssetListItem]:
        """Yield every asset matching ``filters``, following pagination links."""
        page = self.list_assets(filters)
        while True:
            yield from page.results
            if not page.next:
                return
            page = Page[AssetListItem].model_validate(self.api.get(page.next))

    def get_asset(self, asset_id: str) -> Asset:
        """Get an asset by ID"""
        asset_id = require_text(asset_id, "asset id")
        return self.cache.get_or_fetch(
            asset_cache_key(asset_id),
            lambda: Asset.model_validate(self.api.get(f"/api/assets/{asset_id}/")),
        )

    def update_asset(self, asset_id: str, update: AssetUpdate) -> Asset:
        """Patch an asset and refresh the cached copy."""
        asset_id = require_text(asset_id, "asset id")
        try:
            data = self.api.patch(f"/api/assets/{asset_id}/", json=update.to_payload())
        except Exception as e:
            logger.error(f"Error updating asset {asset_id}: {e}")
            raise

        asset = Asset.model_validate(data)
        self.cache.set(asset_cache_key(asset.id), asset)
        self.cache.invalidate(ASSETS_CACHE_PREFIX)
        return asset

    def approve_asset(self, asset_id: str) -> Asset:
        """Mark an asset as approved."""
        return self.update_asset(asset_id, AssetUpdate(status=AssetStatus.APPROVED))

    def delete_asset(self, asset_id: str) -> None:
        """Soft-delete an asset."""
        asset_id = require_text(asset_id, "asset id")
        try:
            self.api.delete(f"/api/assets/{asset_id}/")
        except Exception as e:
            logger.error(f"Error deleting asset {asset_id}: {e}")
            raise
        self._invalidate(asset_id)
        logger.info(f"Deleted asset {asset_id}")

    def restore_asset(self, asset_id: str) -> Asset:
        """Restore a soft-deleted asset."""
        asset_id = require_text(asset_id, "asset id")
        try:
            data = self.api.post(f"/api/assets/{asset_id}/restore/")
        except Exception as e:
            logger.error(f"Error restoring asset {asset_id}: {e}")
            raise
        self._invalidate(asset_id)
        logger.info(f"Restored asset {asset_id}")
        return Asset.model_validate(data)

    def _invalidate(self, asset_id: str) -> None:
        self.cache.invalidate(ASSETS_CACHE_PREFIX)
        self.cache.invalidate(asset_cache_key(asset_id))
