from __future__ import annotations

from enum import Enum
from typing import Any, Mapping


class GroupType(str, Enum):
    ADMIN = "admin"
    EDITOR = "editor"
    VIEWER = "viewer"


class Permission(str, Enum):
    CAN_CREATE_USERS = "canCreateUsers"
    CAN_DELETE_USERS = "canDeleteUsers"
    CAN_MANAGE_GROUPS = "canManageGroups"
    CAN_LINK_DEVICES = "canLinkDevices"
    CAN_SEND_MESSAGES = "canSendMessages"
    CAN_VIEW_LOGS = "canViewLogs"


GROUP_PERMISSIONS: dict[GroupType, dict[Permission, bool]] = {
    GroupType.ADMIN: {permission: True for permission in Permission},
    GroupType.EDITOR: {
        Permission.CAN_CREATE_USERS: False,
        Permission.CAN_DELETE_USERS: False,
        Permission.CAN_MANAGE_GROUPS: False,
        Permission.CAN_LINK_DEVICES: True,
        Permission.CAN_SEND_MESSAGES: True,
        Permission.CAN_VIEW_LOGS: True,
    },
    GroupType.VIEWER: {
        Permission.CAN_CREATE_USERS: False,
        Permission.CAN_DELETE_USERS: False,
        Permission.CAN_MANAGE_GROUPS: False,
        Permission.CAN_LINK_DEVICES: False,
        Permission.CAN_SEND_MESSAGES: False,
        Permission.CAN_VIEW_LOGS: True,
    },
}


def normalize_group_type(value: Any) -> GroupType | None:
    if isinstance(value, GroupType):
        return value
    try:
        return GroupType(str(value or "").strip().lower())
    except ValueError:
        return None


def default_permissions(group_type: Any) -> dict[Permission, bool]:
    resolved = normalize_group_type(group_type)
    if resolved is None:
        return {}
    return dict(GROUP_PERMISSIONS[resolved])


def has_permission(
    group_type: Any,
    permission: Permission,
    overrides: Mapping[str, Any] | None = None,
) -> bool:
    """Two-tier lookup: per-group override first, then the group type default.

    Unknown group types and missing entries deny.
    """
    if overrides:
        override = overrides.get(permission.value)
        if override is not None:
            return bool(override)
    return default_permissions(group_type).get(permission, False)


def effective_permissions(group_type: Any, overrides: Mapping[str, Any] | None = None) -> dict[str, bool]:
    return {
        permission.value: has_permission(group_type, permission, overrides)
        for permission in Permission
    }


def sanitize_overrides(overrides: Mapping[str, Any] | None) -> dict[str, bool]:
    """Keep only known capability keys with boolean values."""
    if not overrides:
        return {}
    known = {permission.value for permission in Permission}
    return {key: bool(value) for key, value in overrides.items() if key in known and value is not None}
