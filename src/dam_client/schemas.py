####################################
# --- Request/response schemas --- #
####################################

from datetime import datetime
from enum import Enum
from typing import Any, Dict, Generic, List, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
)

DEFAULT_AUDIT_PAGE_SIZE = 20

T = TypeVar("T")


class ServerModel(BaseModel):
    """Base for server-owned records; fields the client does not know are ignored."""
    model_config = ConfigDict(extra="ignore", populate_by_name=True)


# ==================== User and Auth ====================

class UserRole(str, Enum):
    """Roles ordered from most to least privileged."""
    OWNER = "OWNER"
    ADMIN = "ADMIN"
    EDITOR = "EDITOR"
    UPLOADER = "UPLOADER"
    VIEWER = "VIEWER"


class User(ServerModel):
    id: int
    username: str
    email: str = ""
    first_name: str = ""
    last_name: str = ""
    role: UserRole = UserRole.VIEWER
    is_active: bool = True
    date_joined: Optional[datetime] = None


class TokenPair(ServerModel):
    """Response of `POST /auth/jwt/create/`."""
    access: str
    refresh: str


class RefreshedToken(ServerModel):
    """Response of `POST /auth/jwt/refresh/`; `refresh` is present when the server rotates it."""
    access: str
    refresh: Optional[str] = None


class RegisterRequest(BaseModel):
    username: str
    email: str
    password: str
    re_password: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    role: Optional[UserRole] = None


# ==================== Assets ====================

class AssetStatus(str, Enum):
    PENDING = "PENDING"
    APPROVED = "APPROVED"


class VariantKind(str, Enum):
    ORIGINAL = "ORIGINAL"
    THUMB = "THUMB"
    MD = "MD"
    LG = "LG"
    WEBP_THUMB = "WEBP_THUMB"
    WEBP_MD = "WEBP_MD"
    WEBP_LG = "WEBP_LG"


class AssetVariant(ServerModel):
    id: str
    kind: VariantKind
    storage_key: str
    cdn_url: str
    width: Optional[int] = None
    height: Optional[int] = None
    size_bytes: Optional[int] = None
    created_at: Optional[datetime] = None


class Tag(ServerModel):
    id: str
    name: str
    created_at: Optional[datetime] = None


class Folder(ServerModel):
    id: str
    name: str
    parent: Optional[str] = None
    full_path: str = ""
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None


class AssetListItem(ServerModel):
    """Projection returned by `GET /api/assets/`."""
    id: str
    filename_original: str
    cdn_url: str = ""
    mime_type: str = ""
    size_bytes: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    alt_text: str = ""
    status: AssetStatus = AssetStatus.PENDING
    folder: Optional[str] = None
    folder_name: Optional[str] = None
    tag_count: int = 0
    created_by: Optional[int] = None
    created_by_username: Optional[str] = None
    created_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    is_deleted: bool = False


class Asset(ServerModel):
    """Canonical asset record."""
    id: str
    filename_original: str
    storage_key: str
    cdn_url: str = ""
    mime_type: str = ""
    size_bytes: int = 0
    width: Optional[int] = None
    height: Optional[int] = None
    sha256: Optional[str] = None
    alt_text: str = ""
    caption: str = ""
    status: AssetStatus = AssetStatus.PENDING
    folder: Optional[str] = None
    folder_name: Optional[str] = None
    tags: List[Tag] = Field(default_factory=list)
    variants: List[AssetVariant] = Field(default_factory=list)
    created_by: Optional[int] = None
    created_by_username: Optional[str] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    deleted_at: Optional[datetime] = None
    is_deleted: bool = False
    is_image: bool = False


class AssetUpdate(BaseModel):
    """Body of `PATCH /api/assets/{id}/`. Only fields that were set are sent."""
    alt_text: Optional[str] = None
    caption: Optional[str] = None
    status: Optional[AssetStatus] = None
    folder: Optional[str] = None
    tag_ids: Optional[List[str]] = None

    def to_payload(self) -> Dict[str, Any]:
        return self.model_dump(mode="json", exclude_unset=True)


class QueryParams(BaseModel):
    """Filters serialised to query-string parameters."""
    model_config = ConfigDict(frozen=True)

    def to_params(self) -> Dict[str, str]:
        params = {}
        for key, value in self.model_dump(mode="json", exclude_none=True).items():
            if isinstance(value, bool):
                value = "true" if value else "false"
            params[key] = str(value)
        return params

    def cache_key(self) -> tuple:
        return tuple(sorted(self.to_params().items()))


class AssetFilters(QueryParams):
    """Query parameters for `GET /api/assets/`."""
    page: Optional[int] = Field(None, ge=1)
    page_size: Optional[int] = Field(None, ge=1)
    search: Optional[str] = None
    tag: Optional[str] = None
    folder: Optional[str] = None
    type: Optional[str] = None
    status: Optional[AssetStatus] = None
    deleted: Optional[bool] = None


# ==================== Audit ====================

class AuditLog(ServerModel):
    id: str
    actor: Optional[str] = None
    actor_username: Optional[str] = None
    action: str
    target_type: str
    target_id: str
    metadata: Dict[str, Any] = Field(default_factory=dict)
    created_at: Optional[datetime] = None


class AuditFilters(QueryParams):
    """Query parameters for `GET /api/audit/`."""
    page: int = Field(1, ge=1)
    page_size: int = Field(DEFAULT_AUDIT_PAGE_SIZE, ge=1)
    action: Optional[str] = None
    target_type: Optional[str] = None


# ==================== Pagination ====================

class Page(BaseModel, Generic[T]):
    """Envelope of paginated list endpoints."""
    count: int
    next: Optional[str] = None
    previous: Optional[str] = None
    results: List[T]


# ==================== Uploads ====================

class PresignRequest(BaseModel):
    """Body of `POST /api/uploads/presign/`."""
    filename: str
    content_type: str
    folder: Optional[str] = None
    size_bytes: Optional[int] = None


class PresignResponse(ServerModel):
    """One-time upload descriptor returned by the presign call."""
    upload_url: str
    storage_key: str
    required_headers: Dict[str, str] = Field(default_factory=dict)
    public_cdn_url: Optional[str] = None


class UploadMetadata(BaseModel):
    """Optional metadata attached to an asset when its upload completes."""
    folder: Optional[str] = None
    tag_ids: Optional[List[str]] = None
    status: Optional[AssetStatus] = None
    alt_text: Optional[str] = None
    caption: Optional[str] = None


class CompleteUploadRequest(UploadMetadata):
    """Body of `POST /api/uploads/complete/`."""
    storage_key: str
    filename: str
    content_type: str
    size_bytes: int
