from __future__ import annotations

from datetime import datetime
from typing import Dict, List, Literal, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, status
from pydantic import Field
from sqlalchemy.orm import Session

from app.core.config import API_PREFIX
from app.core.database import get_db
from app.core.permissions import Permission, effective_permissions
from app.deps import get_current_user, require_permission
from app.models.user import User
from app.models.user_group import UserGroup
from app.schemas.common import CamelModel, MessageResponse
from app.services import user_groups as user_groups_service
from app.services.authorization_service import AuthorizationService

router = APIRouter(prefix=f"{API_PREFIX}/user-groups", tags=["user-groups"])

GroupTypeLiteral = Literal["admin", "editor", "viewer"]


class UserGroupRead(CamelModel):
    id: int
    name: str
    group_type: str
    custom_permissions: Dict[str, bool] = {}
    permissions: Dict[str, bool]
    is_active: bool
    tenant_id: int
    created_at: Optional[datetime] = None


class UserGroupCreate(CamelModel):
    name: str = Field(..., min_length=1, max_length=100)
    group_type: GroupTypeLiteral = "viewer"
    custom_permissions: Dict[str, bool] = Field(default_factory=dict)
    is_active: bool = True


class UserGroupUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    group_type: Optional[GroupTypeLiteral] = None
    custom_permissions: Optional[Dict[str, bool]] = None
    is_active: Optional[bool] = None


def _serialize_group(group: UserGroup) -> dict:
    return {
        "id": group.id,
        "name": group.name,
        "group_type": group.group_type,
        "custom_permissions": group.custom_permissions or {},
        "permissions": effective_permissions(group.group_type, group.custom_permissions),
        "is_active": group.is_active,
        "tenant_id": group.tenant_id,
        "created_at": group.created_at,
    }


@router.get("", response_model=List[UserGroupRead])
def list_user_groups(
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    # listagem liberada para quem gerencia grupos ou vê logs
    if not (
        AuthorizationService.user_has_permission(user, Permission.CAN_MANAGE_GROUPS)
        or AuthorizationService.user_has_permission(user, Permission.CAN_VIEW_LOGS)
    ):
        AuthorizationService.log_access_denied(
            reason="permission_denied",
            user=user,
            request=request,
            permission=Permission.CAN_VIEW_LOGS,
        )
        raise HTTPException(
            status_code=status.HTTP_403_FORBIDDEN,
            detail=f"Insufficient permissions. Required: {Permission.CAN_VIEW_LOGS.value}",
        )
    groups = user_groups_service.list_user_groups(db, tenant_id=user.tenant_id)
    return [_serialize_group(group) for group in groups]


@router.get("/{group_id}", response_model=UserGroupRead)
def get_user_group(
    group_id: int,
    user: User = Depends(require_permission(Permission.CAN_MANAGE_GROUPS)),
    db: Session = Depends(get_db),
):
    return _serialize_group(user_groups_service.get_user_group(db, tenant_id=user.tenant_id, group_id=group_id))


@router.post("", response_model=UserGroupRead, status_code=status.HTTP_201_CREATED)
def create_user_group(
    payload: UserGroupCreate,
    user: User = Depends(require_permission(Permission.CAN_MANAGE_GROUPS)),
    db: Session = Depends(get_db),
):
    group = user_groups_service.create_user_group(db, tenant_id=user.tenant_id, data=payload.model_dump())
    return _serialize_group(group)


@router.patch("/{group_id}", response_model=UserGroupRead)
def update_user_group(
    group_id: int,
    payload: UserGroupUpdate,
    user: User = Depends(require_permission(Permission.CAN_MANAGE_GROUPS)),
    db: Session = Depends(get_db),
):
    group = user_groups_service.update_user_group(
        db,
        tenant_id=user.tenant_id,
        group_id=group_id,
        changes=payload.model_dump(exclude_unset=True),
    )
    return _serialize_group(group)


@router.delete("/{group_id}", response_model=MessageResponse)
def delete_user_group(
    group_id: int,
    user: User = Depends(require_permission(Permission.CAN_MANAGE_GROUPS)),
    db: Session = Depends(get_db),
):
    return user_groups_service.delete_user_group(db, tenant_id=user.tenant_id, group_id=group_id)
