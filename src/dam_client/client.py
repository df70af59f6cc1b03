"""Facade wiring settings, credentials, services and uploads together."""
import logging
from typing import Callable, Optional

import requests

from dam_client.cache import QueryCache
from dam_client.config.settings import Settings, get_settings
from dam_client.http_client import ApiClient
from dam_client.permissions import PermissionSet
from dam_client.services import AssetService, AuditService, AuthService, FolderService, TagService
from dam_client.token_store import BaseTokenStore, get_token_store
from dam_client.uploads import UploadOrchestrator, UploadProgress

logger = logging.getLogger(__name__)


class DamClient:
    """Entry point for talking to the DAM service.

    Usage:
        client = DamClient.from_settings()
        client.auth.login("alice", "secret")
        page = client.assets.list_assets()
    """

    def __init__(
        self,
        settings: Settings,
        token_store: BaseTokenStore,
        session: Optional[requests.Session] = None,
        storage_session: Optional[requests.Session] = None,
        on_session_expired: Optional[Callable[[], None]] = None,
        on_upload_progress: Optional[Callable[[UploadProgress], None]] = None,
    ):
        self.settings = settings
        self.token_store = token_store
        self._on_session_expired = on_session_expired
        self.cache = QueryCache(ttl_seconds=settings.cache_ttl_seconds)
        self.api = ApiClient(
            settings.api_base_url,
            token_store,
            session=session,
            timeout=settings.request_timeout,
            on_session_expired=self._session_expired,
        )

        self.auth = AuthService(self.api, self.cache)
        self.assets = AssetService(self.api, self.cache)
        self.folders = FolderService(self.api, self.cache)
        self.tags = TagService(self.api, self.cache)
        self.audit = AuditService(self.api, self.cache)
        self.uploads = UploadOrchestrator(
            self.api,
            self.cache,
            on_progress=on_upload_progress,
            storage_session=storage_session,
            chunk_size=settings.upload_chunk_size,
            max_workers=settings.upload_max_workers,
            upload_timeout=settings.upload_timeout,
        )

    @classmethod
    def from_settings(cls, settings: Optional[Settings] = None, **kwargs) -> "DamClient":
        """Build a client from settings, persisting tokens in the configured file."""
        settings = settings or get_settings()
        return cls(settings, get_token_store(settings), **kwargs)

    @property
    def permissions(self) -> PermissionSet:
        return self.auth.permissions

    def _session_expired(self) -> None:
        logger.warning("Session expired, login required")
        self.cache.clear()
        self.auth.current_user = None
        if self._on_session_expired is not None:
            self._on_session_expired()
