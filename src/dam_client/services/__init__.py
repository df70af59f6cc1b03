"""
DAM Domain Layer

Typed wrappers around the REST endpoints. Queries read through the shared
QueryCache; mutations invalidate the cache entries they can affect.
"""

from .auth_service import AuthService
from .asset_service import AssetService
from .folder_service import FolderService
from .tag_service import TagService
from .audit_service import AuditService

__all__ = [
    'AuthService',
    'AssetService',
    'FolderService',
    'TagService',
    'AuditService',
]
