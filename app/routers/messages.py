from __future__ import annotations

from datetime import datetime
from typing import List, Literal, Optional

from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session

from app.core.config import API_PREFIX
from app.core.database import get_db
from app.core.permissions import Permission
from app.deps import require_permission
from app.models.user import User
from app.schemas.common import CamelModel, MessageResponse
from app.services import messages as messages_service

router = APIRouter(prefix=f"{API_PREFIX}/messages", tags=["messages"])

MessageStatus = Literal["pending", "sent", "delivered", "read", "failed"]


class MessageRead(CamelModel):
    id: int
    device_id: str
    phone_number: str
    message_type: str
    content: str
    caption: Optional[str] = None
    group_id: Optional[str] = None
    reply_to_message_id: Optional[str] = None
    mentioned_phone_numbers: List[str] = []
    broadcast: bool = False
    status: str
    whatsapp_message_id: Optional[str] = None
    error_message: Optional[str] = None
    tenant_id: int
    sent_by: Optional[int] = None
    sent_at: datetime
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None


class MessageList(CamelModel):
    messages: List[MessageRead]
    total: int
    page: int
    limit: int


class MessageStats(CamelModel):
    period: str
    total: int
    pending: int
    sent: int
    delivered: int
    read: int
    failed: int


class MessageStatusUpdate(CamelModel):
    status: MessageStatus


@router.get("", response_model=MessageList)
def list_messages(
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=100),
    search: Optional[str] = None,
    device_id: Optional[str] = Query(None, alias="deviceId"),
    status_filter: Optional[MessageStatus] = Query(None, alias="status"),
    message_type: Optional[str] = Query(None, alias="messageType"),
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return messages_service.list_messages(
        db,
        tenant_id=user.tenant_id,
        page=page,
        limit=limit,
        search=search,
        device_id=device_id,
        status_filter=status_filter,
        message_type=message_type,
    )


@router.get("/stats", response_model=MessageStats)
def message_stats(
    period: Literal["24h", "7d", "30d"] = "24h",
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return messages_service.message_stats(db, tenant_id=user.tenant_id, period=period)


@router.get("/{message_id}", response_model=MessageRead)
def get_message(
    message_id: int,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
):
    return messages_service.get_message(db, tenant_id=user.tenant_id, message_id=message_id)


@router.patch("/{message_id}/status", response_model=MessageRead)
def update_message_status(
    message_id: int,
    payload: MessageStatusUpdate,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return messages_service.update_message_status(
        db,
        tenant_id=user.tenant_id,
        message_id=message_id,
        new_status=payload.status,
    )


@router.delete("/{message_id}", response_model=MessageResponse)
def delete_message(
    message_id: int,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
):
    return messages_service.delete_message(db, tenant_id=user.tenant_id, message_id=message_id)
