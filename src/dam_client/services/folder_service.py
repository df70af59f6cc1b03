"""
Folder service for the DAM API.
"""

import logging
from typing import List, Optional

from dam_client.schemas import Folder
from dam_client.services.base import BaseService, require_text

logger = logging.getLogger(__name__)

FOLDERS_CACHE_PREFIX = ("folders",)


class FolderService(BaseService):
    """Service for managing the folder tree"""

    def list_folders(self) -> List[Folder]:
        """Get all folders."""
        return self.cache.get_or_fetch(
            FOLDERS_CACHE_PREFIX,
            lambda: [Folder.model_validate(item) for item in self._get_all("/api/folders/")],
        )

    def get_folder(self, folder_id: str) -> Folder:
        """Get folder by ID"""
        folder_id = require_text(folder_id, "folder id")
        return self.cache.get_or_fetch(
            FOLDERS_CACHE_PREFIX + (folder_id,),
            lambda: Folder.model_validate(self.api.get(f"/api/folders/{folder_id}/")),
        )

    def create_folder(self, name: str, parent: Optional[str] = None) -> Folder:
        """Create a folder, optionally nested under ``parent``."""
        payload = {"name": require_text(name, "folder name")}
        if parent:
            payload["parent"] = parent
        folder = Folder.model_validate(self.api.post("/api/folders/", json=payload))
        self.cache.invalidate(FOLDERS_CACHE_PREFIX)
        logger.info(f"Created folder {folder.full_path or folder.name}")
        return folder

    def update_folder(self, folder_id: str, name: Optional[str] = None, parent: Optional[str] = None) -> Folder:
        """Rename and/or move a folder."""
        folder_id = require_text(folder_id, "folder id")
        payload = {}
        if name is not None:
            payload["name"] = require_text(name, "folder name")
        if parent is not None:
            payload["parent"] = parent or None
        folder = Folder.model_validate(self.api.patch(f"/api/folders/{folder_id}/", json=payload))
        self.cache.invalidate(FOLDERS_CACHE_PREFIX)
        return folder

    def delete_folder(self, folder_id: str) -> None:
        """Delete a folder."""
        folder_id = require_text(folder_id, "folder id")
        self.api.delete(f"/api/folders/{folder_id}/")
        self.cache.invalidate(FOLDERS_CACHE_PREFIX)
        logger.info(f"Deleted folder {folder_id}")
