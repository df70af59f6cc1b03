"""
Tag service for the DAM API.
"""

import logging
from typing import List

from dam_client.schemas import Tag
from dam_client.services.base import BaseService, require_text

logger = logging.getLogger(__name__)

TAGS_CACHE_PREFIX = ("tags",)


class TagService(BaseService):
    """Service for managing tags"""

    def list_tags(self) -> List[Tag]:
        """Get all tags."""
        return self.cache.get_or_fetch(
            TAGS_CACHE_PREFIX,
            lambda: [Tag.model_validate(item) for item in self._get_all("/api/tags/")],
        )

    def create_tag(self, name: str) -> Tag:
        tag = Tag.model_validate(self.api.post("/api/tags/", json={"name": require_text(name, "tag name")}))
        self.cache.invalidate(TAGS_CACHE_PREFIX)
        logger.info(f"Created tag {tag.name}")
        return tag

    def update_tag(self, tag_id: str, name: str) -> Tag:
        tag_id = require_text(tag_id, "tag id")
        tag = Tag.model_validate(
            self.api.patch(f"/api/tags/{tag_id}/", json={"name": require_text(name, "tag name")})
        )
        self.cache.invalidate(TAGS_CACHE_PREFIX)
        return tag

    def delete_tag(self, tag_id: str) -> None:
        tag_id = require_text(tag_id, "tag id")
        self.api.delete(f"/api/tags/{tag_id}/")
        self.cache.invalidate(TAGS_CACHE_PREFIX)
        logger.info(f"Deleted tag {tag_id}")
