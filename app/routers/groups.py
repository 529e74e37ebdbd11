from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from app.core.config import API_PREFIX
from app.core.database import get_db
from app.core.permissions import Permission
from app.deps import require_permission
from app.models.user import User
from app.schemas.common import CamelModel, MessageResponse
from app.services import chat_groups as groups_service
from app.services.contacts import normalize_phone

router = APIRouter(prefix=f"{API_PREFIX}/groups", tags=["groups"])


class GroupRead(CamelModel):
    id: int
    group_id: str
    name: str
    description: Optional[str] = None
    invite_code: Optional[str] = None
    invite_link: Optional[str] = None
    is_announcement: bool
    is_community: bool
    participants: List[str] = []
    profile_picture_url: Optional[str] = None
    tenant_id: int
    created_by: int
    created_at: Optional[datetime] = None


class GroupList(CamelModel):
    groups: List[GroupRead]
    total: int
    page: int
    limit: int


class GroupCreate(CamelModel):
    group_id: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None
    invite_code: Optional[str] = None
    invite_link: Optional[str] = None
    is_announcement: bool = False
    is_community: bool = False
    participants: List[str] = Field(default_factory=list)
    profile_picture_url: Optional[str] = None

    @field_validator("participants")
    @classmethod
    def _validate_participants(cls, value: List[str]) -> List[str]:
        return [normalize_phone(entry) for entry in value]


class GroupUpdate(CamelModel):
    name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    invite_code: Optional[str] = None
    invite_link: Optional[str] = None
    is_announcement: Optional[bool] = None
    is_community: Optional[bool] = None
    participants: Optional[List[str]] = None
    profile_picture_url: Optional[str] = None

    @field_validator("participants")
    @classmethod
    def _validate_participants(cls, value: Optional[List[str]]) -> Optional[List[str]]:
        if value is None:
            return None
        return [normalize_phone(entry) for entry in value]


class ParticipantPayload(CamelModel):
    phone_number: str

    @field_validator("phone_number")
    @classmethod
    def _validate_phone(cls, value: str) -> str:
        return normalize_phone(value)


class GroupStats(CamelModel):
    group_id: str
    participant_count: int
    message_count: int
    last_message_at: Optional[datetime] = None


@router.post("", response_model=GroupRead, status_code=status.HTTP_201_CREATED)
def create_group(
    payload: GroupCreate,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return groups_service.create_group(db, tenant_id=user.tenant_id, user_id=user.id, data=payload.model_dump())


@router.get("", response_model=GroupList)
def list_groups(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return groups_service.list_groups(db, tenant_id=user.tenant_id, page=page, limit=limit, search=search)


@router.get("/{group_pk}", response_model=GroupRead)
def get_group(
    group_pk: int,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return groups_service.get_group(db, tenant_id=user.tenant_id, group_pk=group_pk)


@router.get("/{group_pk}/stats", response_model=GroupStats)
def group_stats(
    group_pk: int,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return groups_service.group_stats(db, tenant_id=user.tenant_id, group_pk=group_pk)


@router.patch("/{group_pk}", response_model=GroupRead)
def update_group(
    group_pk: int,
    payload: GroupUpdate,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return groups_service.update_group(
        db,
        tenant_id=user.tenant_id,
        group_pk=group_pk,
        changes=payload.model_dump(exclude_unset=True),
    )


@router.delete("/{group_pk}", response_model=MessageResponse)
def delete_group(
    group_pk: int,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return groups_service.delete_group(db, tenant_id=user.tenant_id, group_pk=group_pk)


@router.post("/{group_pk}/participants", response_model=GroupRead)
def add_participant(
    group_pk: int,
    payload: ParticipantPayload,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return groups_service.add_participant(
        db,
        tenant_id=user.tenant_id,
        group_pk=group_pk,
        phone_number=payload.phone_number,
    )


@router.delete("/{group_pk}/participants/{phone_number}", response_model=GroupRead)
def remove_participant(
    group_pk: int,
    phone_number: str,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return groups_service.remove_participant(
        db,
        tenant_id=user.tenant_id,
        group_pk=group_pk,
        phone_number=phone_number,
    )
