from __future__ import annotations

from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query, status
from pydantic import EmailStr, Field, field_validator
from sqlalchemy.orm import Session

from app.core.config import API_PREFIX
from app.core.database import get_db
from app.core.permissions import Permission
from app.deps import require_permission
from app.models.user import User
from app.routers.messages import MessageRead
from app.schemas.common import CamelModel, MessageResponse
from app.services import contacts as contacts_service
from app.services.contacts import normalize_phone

router = APIRouter(prefix=f"{API_PREFIX}/contacts", tags=["contacts"])


class ContactRead(CamelModel):
    id: int
    phone_number: str
    first_name: Optional[str] = None
    last_name: Optional[str] = None
    email: Optional[str] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = []
    messages_sent: int
    messages_received: int
    last_message_at: Optional[datetime] = None
    tenant_id: int
    created_by: int
    created_at: Optional[datetime] = None


class ContactList(CamelModel):
    contacts: List[ContactRead]
    total: int
    page: int
    limit: int


class ContactCreate(CamelModel):
    phone_number: str
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    notes: Optional[str] = None
    tags: List[str] = Field(default_factory=list)

    @field_validator("phone_number")
    @classmethod
    def _validate_phone(cls, value: str) -> str:
        return normalize_phone(value)


class ContactUpdate(CamelModel):
    phone_number: Optional[str] = None
    first_name: Optional[str] = Field(None, max_length=100)
    last_name: Optional[str] = Field(None, max_length=100)
    email: Optional[EmailStr] = None
    company: Optional[str] = None
    job_title: Optional[str] = None
    notes: Optional[str] = None
    tags: Optional[List[str]] = None

    @field_validator("phone_number")
    @classmethod
    def _validate_phone(cls, value: Optional[str]) -> Optional[str]:
        return normalize_phone(value) if value is not None else None


class ContactStats(CamelModel):
    contact_id: int
    messages_sent: int
    messages_received: int
    last_message_at: Optional[datetime] = None
    recent_messages: List[MessageRead]


@router.post("", response_model=ContactRead, status_code=status.HTTP_201_CREATED)
def create_contact(
    payload: ContactCreate,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return contacts_service.create_contact(db, tenant_id=user.tenant_id, user_id=user.id, data=payload.model_dump())


@router.get("", response_model=ContactList)
def list_contacts(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    tag: Optional[str] = None,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return contacts_service.list_contacts(
        db,
        tenant_id=user.tenant_id,
        page=page,
        limit=limit,
        search=search,
        tag=tag,
    )


@router.get("/{contact_id}", response_model=ContactRead)
def get_contact(
    contact_id: int,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return contacts_service.get_contact(db, tenant_id=user.tenant_id, contact_id=contact_id)


@router.get("/{contact_id}/stats", response_model=ContactStats)
def contact_stats(
    contact_id: int,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return contacts_service.contact_stats(db, tenant_id=user.tenant_id, contact_id=contact_id)


@router.patch("/{contact_id}", response_model=ContactRead)
def update_contact(
    contact_id: int,
    payload: ContactUpdate,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return contacts_service.update_contact(
        db,
        tenant_id=user.tenant_id,
        contact_id=contact_id,
        changes=payload.model_dump(exclude_unset=True),
    )


@router.delete("/{contact_id}", response_model=MessageResponse)
def delete_contact(
    contact_id: int,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return contacts_service.delete_contact(db, tenant_id=user.tenant_id, contact_id=contact_id)
