from __future__ import annotations

import logging

from fastapi import HTTPException, Request, status

from app.core.permissions import Permission, has_permission
from app.models.user import User

logger = logging.getLogger(__name__)


class AuthorizationService:
    """Centralize capability checks for tenant users."""

    @staticmethod
    def log_access_denied(
        *,
        reason: str,
        user: User,
        request: Request | None,
        permission: Permission | None = None,
    ) -> None:
        endpoint = f"{request.method} {request.url.path}" if request is not None else None
        group = getattr(user, "user_group", None)
        logger.warning(
            "Access denied (%s): user_id=%s group_type=%s user_tenant=%s permission=%s endpoint=%s",
            reason,
            getattr(user, "id", None),
            getattr(group, "group_type", None),
            getattr(user, "tenant_id", None),
            permission.value if permission else None,
            endpoint,
        )

    @staticmethod
    def user_has_permission(user: User, permission: Permission) -> bool:
        group = getattr(user, "user_group", None)
        if group is None:
            return False
        return has_permission(group.group_type, permission, group.custom_permissions)

    @classmethod
    def ensure_permission(
        cls,
        *,
        user: User,
        permission: Permission,
        request: Request | None = None,
    ) -> None:
        if not cls.user_has_permission(user, permission):
            cls.log_access_denied(reason="permission_denied", user=user, request=request, permission=permission)
            raise HTTPException(
                status_code=status.HTTP_403_FORBIDDEN,
                detail=f"Insufficient permissions. Required: {permission.value}",
            )

    @classmethod
    def ensure_self_or_permission(
        cls,
        *,
        user: User,
        target_user_id: int,
        permission: Permission,
        request: Request | None = None,
        detail: str = "You can only modify your own profile",
    ) -> None:
        """Acting on yourself is always allowed; on others requires `permission`."""
        if int(user.id) == int(target_user_id):
            return
        if not cls.user_has_permission(user, permission):
            cls.log_access_denied(reason="not_self", user=user, request=request, permission=permission)
            raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail=detail)
