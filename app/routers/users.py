from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query, Request, status
from pydantic import EmailStr, Field
from sqlalchemy.orm import Session

from app.core.config import API_PREFIX
from app.core.database import get_db
from app.core.permissions import Permission
from app.deps import get_current_user, require_permission
from app.models.user import User
from app.schemas.common import CamelModel, MessageResponse
from app.services import users as users_service
from app.services.authorization_service import AuthorizationService

router = APIRouter(prefix=f"{API_PREFIX}/users", tags=["users"])


class UserRead(CamelModel):
    id: int
    email: str
    first_name: str
    last_name: str
    phone_number: Optional[str] = None
    is_active: bool
    is_email_verified: bool
    last_login_at: Optional[datetime] = None
    tenant_id: int
    user_group_id: int
    created_at: Optional[datetime] = None


class UserList(CamelModel):
    users: List[UserRead]
    total: int
    page: int
    limit: int


class UserCreate(CamelModel):
    email: EmailStr
    password: str = Field(..., min_length=6)
    first_name: str = Field(..., min_length=1)
    last_name: str = Field(..., min_length=1)
    phone_number: Optional[str] = None
    user_group_id: int = Field(..., ge=1)
    is_active: bool = True


class UserUpdate(CamelModel):
    email: Optional[EmailStr] = None
    first_name: Optional[str] = Field(None, min_length=1)
    last_name: Optional[str] = Field(None, min_length=1)
    phone_number: Optional[str] = None
    user_group_id: Optional[int] = Field(None, ge=1)
    is_active: Optional[bool] = None


class ChangePasswordPayload(CamelModel):
    current_password: Optional[str] = None
    new_password: str = Field(..., min_length=6)


@router.post("", response_model=UserRead, status_code=status.HTTP_201_CREATED)
def create_user(
    payload: UserCreate,
    user: User = Depends(require_permission(Permission.CAN_CREATE_USERS)),
    db: Session = Depends(get_db),
):
    return users_service.create_user(db, tenant_id=user.tenant_id, data=payload.model_dump())


@router.get("", response_model=UserList)
def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    user_group_id: Optional[int] = Query(None, alias="userGroupId"),
    is_active: Optional[bool] = Query(None, alias="isActive"),
    is_email_verified: Optional[bool] = Query(None, alias="isEmailVerified"),
    sort_by: Literal["createdAt", "email", "firstName", "lastName", "lastLoginAt"] = Query(
        "createdAt", alias="sortBy"
    ),
    sort_order: Literal["asc", "desc"] = Query("desc", alias="sortOrder"),
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return users_service.list_users(
        db,
        tenant_id=user.tenant_id,
        page=page,
        limit=limit,
        search=search,
        user_group_id=user_group_id,
        is_active=is_active,
        is_email_verified=is_email_verified,
        sort_by=sort_by,
        sort_order=sort_order,
    )


@router.get("/{user_id}", response_model=UserRead)
def get_user(
    user_id: int,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return users_service.get_user(db, tenant_id=user.tenant_id, user_id=user_id)


@router.patch("/{user_id}", response_model=UserRead)
def update_user(
    user_id: int,
    payload: UserUpdate,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AuthorizationService.ensure_self_or_permission(
        user=user,
        target_user_id=user_id,
        permission=Permission.CAN_CREATE_USERS,
        request=request,
    )
    changes = payload.model_dump(exclude_unset=True)
    is_admin_action = AuthorizationService.user_has_permission(user, Permission.CAN_CREATE_USERS)
    if not is_admin_action:
        # sem permissão de admin o usuário só edita o próprio perfil
        changes.pop("user_group_id", None)
        changes.pop("is_active", None)
    return users_service.update_user(db, tenant_id=user.tenant_id, user_id=user_id, changes=changes)


@router.delete("/{user_id}", response_model=MessageResponse)
def delete_user(
    user_id: int,
    user: User = Depends(require_permission(Permission.CAN_DELETE_USERS)),
    db: Session = Depends(get_db),
):
    return users_service.delete_user(db, tenant_id=user.tenant_id, user_id=user_id, acting_user_id=user.id)


@router.post("/{user_id}/change-password", response_model=MessageResponse)
def change_password(
    user_id: int,
    payload: ChangePasswordPayload,
    request: Request,
    user: User = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    AuthorizationService.ensure_self_or_permission(
        user=user,
        target_user_id=user_id,
        permission=Permission.CAN_CREATE_USERS,
        request=request,
        detail="You can only change your own password",
    )
    return users_service.change_password(
        db,
        tenant_id=user.tenant_id,
        user_id=user_id,
        new_password=payload.new_password,
        current_password=payload.current_password,
        require_current=int(user_id) == int(user.id),
    )
