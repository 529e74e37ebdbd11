from __future__ import annotations

import hmac
import logging
from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from fastapi import APIRouter, Body, Depends, Header, HTTPException, Query, status
from pydantic import Field, field_validator
from sqlalchemy.orm import Session

from app.core.config import API_PREFIX, WAHA_WEBHOOK_SECRET
from app.core.database import get_db
from app.core.permissions import Permission
from app.deps import require_permission
from app.models.user import User
from app.routers.messages import MessageRead
from app.schemas.common import CamelModel, MessageResponse
from app.services.contacts import normalize_phone
from app.whatsapp.service import WhatsAppService, get_whatsapp_service

logger = logging.getLogger(__name__)

router = APIRouter(prefix=f"{API_PREFIX}/whatsapp", tags=["whatsapp"])

DeviceStatus = Literal["connected", "disconnected", "connecting", "error"]
MessageType = Literal["text", "image", "video", "audio", "document", "location", "contact"]


class DeviceRead(CamelModel):
    id: int
    device_id: str
    device_name: str
    description: Optional[str] = None
    phone_number: Optional[str] = None
    status: str
    is_active: bool
    last_seen: Optional[datetime] = None
    last_message_at: Optional[datetime] = None
    messages_sent: int
    messages_received: int
    qr_code_expires_at: Optional[datetime] = None
    error_message: Optional[str] = None
    tenant_id: int
    created_by: int
    created_at: Optional[datetime] = None


class DeviceCreate(CamelModel):
    device_name: str = Field(..., min_length=1, max_length=100)
    description: Optional[str] = None


class DeviceUpdate(CamelModel):
    device_name: Optional[str] = Field(None, min_length=1, max_length=100)
    description: Optional[str] = None
    is_active: Optional[bool] = None


class QRCodeResponse(CamelModel):
    qr_code: str
    expires_at: datetime


class DeviceStatusResponse(CamelModel):
    device_id: str
    status: str
    last_seen: Optional[datetime] = None


class SendMessagePayload(CamelModel):
    device_id: str = Field(..., min_length=1)
    phone_number: str
    message_type: MessageType = "text"
    content: str = Field(..., min_length=1)
    caption: Optional[str] = None
    group_id: Optional[str] = None
    reply_to_message_id: Optional[str] = None
    mentioned_phone_numbers: List[str] = Field(default_factory=list)
    broadcast: bool = False

    @field_validator("phone_number")
    @classmethod
    def _validate_phone(cls, value: str) -> str:
        return normalize_phone(value)


@router.post("/devices", response_model=DeviceRead, status_code=status.HTTP_201_CREATED)
def create_device(
    payload: DeviceCreate,
    user: User = Depends(require_permission(Permission.CAN_LINK_DEVICES)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.create_device(
        db,
        user=user,
        device_name=payload.device_name.strip(),
        description=payload.description,
    )


@router.get("/devices", response_model=List[DeviceRead])
def list_devices(
    status_filter: Optional[DeviceStatus] = Query(None, alias="status"),
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.list_devices(db, tenant_id=user.tenant_id, status_filter=status_filter)


@router.get("/devices/{device_id}", response_model=DeviceRead)
def get_device(
    device_id: str,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.get_device(db, tenant_id=user.tenant_id, device_id=device_id)


@router.patch("/devices/{device_id}", response_model=DeviceRead)
def update_device(
    device_id: str,
    payload: DeviceUpdate,
    user: User = Depends(require_permission(Permission.CAN_LINK_DEVICES)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.update_device(
        db,
        tenant_id=user.tenant_id,
        device_id=device_id,
        changes=payload.model_dump(exclude_unset=True),
    )


@router.delete("/devices/{device_id}", response_model=MessageResponse)
def delete_device(
    device_id: str,
    user: User = Depends(require_permission(Permission.CAN_LINK_DEVICES)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.delete_device(db, tenant_id=user.tenant_id, device_id=device_id)


@router.post("/devices/{device_id}/qr", response_model=QRCodeResponse)
def generate_qr_code(
    device_id: str,
    user: User = Depends(require_permission(Permission.CAN_LINK_DEVICES)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.generate_qr_code(db, tenant_id=user.tenant_id, device_id=device_id)


@router.get("/devices/{device_id}/status", response_model=DeviceStatusResponse)
def get_device_status(
    device_id: str,
    user: User = Depends(require_permission(Permission.CAN_VIEW_LOGS)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.get_device_status(db, tenant_id=user.tenant_id, device_id=device_id)


@router.post("/devices/{device_id}/disconnect", response_model=DeviceRead)
def disconnect_device(
    device_id: str,
    user: User = Depends(require_permission(Permission.CAN_LINK_DEVICES)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.disconnect_device(db, tenant_id=user.tenant_id, device_id=device_id)


@router.post("/send", response_model=MessageRead, status_code=status.HTTP_201_CREATED)
def send_message(
    payload: SendMessagePayload,
    user: User = Depends(require_permission(Permission.CAN_SEND_MESSAGES)),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    return service.send_message(db, user=user, data=payload.model_dump())


@router.post("/webhook/{session_id}")
def gateway_webhook(
    session_id: str,
    event: Dict[str, Any] = Body(...),
    x_webhook_secret: Optional[str] = Header(None, alias="X-Webhook-Secret"),
    db: Session = Depends(get_db),
    service: WhatsAppService = Depends(get_whatsapp_service),
):
    if WAHA_WEBHOOK_SECRET and not hmac.compare_digest(x_webhook_secret or "", WAHA_WEBHOOK_SECRET):
        logger.warning("webhook rejected: invalid secret session=%s", session_id)
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid webhook secret")
    return service.handle_webhook(db, session_id=session_id, event=event)
