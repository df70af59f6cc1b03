"""
Role based permission checks.

Every capability is derived from one static table so the answers for a role
cannot drift apart between call sites. These checks only decide which actions
to offer; the API remains the enforcement point.

Permission Matrix:
- Owner: Full access, including deletion and the audit log
- Admin: Same as owner except the owner-only flag
- Editor: Upload and edit every asset, manage folders and tags
- Uploader: Upload, and edit only the assets they created
- Viewer: Read-only access
"""
from dataclasses import dataclass, fields
from typing import Dict, FrozenSet, Optional, Union

from dam_client.schemas import User, UserRole


@dataclass(frozen=True)
class PermissionSet:
    """Capabilities of the current user."""
    can_view: bool = False
    can_upload: bool = False
    can_edit: bool = False
    can_delete: bool = False
    can_manage_folders: bool = False
    can_manage_tags: bool = False
    can_view_audit: bool = False
    is_owner: bool = False
    is_admin: bool = False
    is_editor: bool = False

    def granted(self) -> list:
        """Names of the capabilities that are granted."""
        return [f.name for f in fields(self) if getattr(self, f.name)]


_OWNER_TO_ADMIN = frozenset({UserRole.OWNER, UserRole.ADMIN})
_OWNER_TO_EDITOR = _OWNER_TO_ADMIN | {UserRole.EDITOR}
_OWNER_TO_UPLOADER = _OWNER_TO_EDITOR | {UserRole.UPLOADER}
_ALL_ROLES = frozenset(UserRole)

CAPABILITY_TABLE: Dict[str, FrozenSet[UserRole]] = {
    "can_view": _ALL_ROLES,
    "can_upload": _OWNER_TO_UPLOADER,
    "can_edit": _OWNER_TO_EDITOR,
    "can_delete": _OWNER_TO_ADMIN,
    "can_manage_folders": _OWNER_TO_EDITOR,
    "can_manage_tags": _OWNER_TO_EDITOR,
    "can_view_audit": _OWNER_TO_ADMIN,
    "is_owner": frozenset({UserRole.OWNER}),
    "is_admin": _OWNER_TO_ADMIN,
    "is_editor": _OWNER_TO_EDITOR,
}

NO_PERMISSIONS = PermissionSet()

_PERMISSIONS_BY_ROLE: Dict[UserRole, PermissionSet] = {
    role: PermissionSet(**{name: role in roles for name, roles in CAPABILITY_TABLE.items()})
    for role in UserRole
}

ROLE_DISPLAY_NAMES = {
    UserRole.OWNER: "Owner",
    UserRole.ADMIN: "Admin",
    UserRole.EDITOR: "Editor",
    UserRole.UPLOADER: "Uploader",
    UserRole.VIEWER: "Viewer",
}

ROLE_DESCRIPTIONS = {
    UserRole.OWNER: "Full system access with all permissions",
    UserRole.ADMIN: "Manage all assets, folders, tags, and view audit logs",
    UserRole.EDITOR: "Create, edit all assets, manage folders and tags",
    UserRole.UPLOADER: "Upload and edit own assets, read-only for others",
    UserRole.VIEWER: "Read-only access to all assets",
}


def derive(role: Optional[Union[UserRole, str]]) -> PermissionSet:
    """Map a role to its permission set. No role means no permissions."""
    if role is None:
        return NO_PERMISSIONS
    return _PERMISSIONS_BY_ROLE[UserRole(role)]


def permissions_for(user: Optional[User]) -> PermissionSet:
    """Permission set of a user, all-false when nobody is logged in."""
    if user is None:
        return NO_PERMISSIONS
    return derive(user.role)


def can_modify(user: Optional[User], resource_owner_id: Optional[int]) -> bool:
    """Check if a user may modify a resource created by ``resource_owner_id``.

    Editors and above may modify anything; uploaders only their own resources.
    """
    if user is None:
        return False
    if derive(user.role).can_edit:
        return True
    if user.role == UserRole.UPLOADER:
        return resource_owner_id is not None and user.id == resource_owner_id
    return False


def role_display_name(role: Union[UserRole, str]) -> str:
    return ROLE_DISPLAY_NAMES[UserRole(role)]


def role_description(role: Union[UserRole, str]) -> str:
    return ROLE_DESCRIPTIONS[UserRole(role)]
