from __future__ import annotations

import logging
from datetime import timedelta
from typing import Any

from fastapi import HTTPException, status
from sqlalchemy.orm import Session

from app.core.config import APP_URL, API_PREFIX, QR_CODE_TTL_SECONDS, WHATSAPP_PROVIDER
from app.core.metrics import request_metrics
from app.core.timeutils import utcnow
from app.models.contact import Contact
from app.models.device import Device
from app.models.message import Message
from app.models.user import User
from app.services.contacts import phone_variants
from app.services.messages import advance_message_status
from app.whatsapp.base import WhatsAppGateway, WhatsAppGatewayError, normalize_gateway_state
from app.whatsapp.mock_provider import MockWhatsAppGateway
from app.whatsapp.waha_provider import WahaGateway

logger = logging.getLogger(__name__)

# ack do WAHA -> status local da mensagem
_ACK_STATUS = {-1: "failed", 0: "pending", 1: "sent", 2: "delivered", 3: "read", 4: "read"}


def _chat_phone(chat_id: str | None) -> str | None:
    if not chat_id:
        return None
    return chat_id.split("@", 1)[0]


class WhatsAppService:
    """Device lifecycle and message dispatch through the selected gateway."""

    def __init__(self, gateway: WhatsAppGateway, *, app_url: str = APP_URL) -> None:
        self.gateway = gateway
        self.app_url = app_url.rstrip("/")

    def webhook_url(self, session_id: str) -> str:
        return f"{self.app_url}{API_PREFIX}/whatsapp/webhook/{session_id}"

    # ------------------------------------------------------------------
    # Devices
    # ------------------------------------------------------------------
    def _device_query(self, db: Session, tenant_id: int):
        return db.query(Device).filter(Device.tenant_id == tenant_id, Device.is_deleted.is_(False))

    def get_device(self, db: Session, *, tenant_id: int, device_id: str) -> Device:
        device = self._device_query(db, tenant_id).filter(Device.device_id == device_id).first()
        if not device:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
        return device

    def list_devices(self, db: Session, *, tenant_id: int, status_filter: str | None = None) -> list[Device]:
        query = self._device_query(db, tenant_id)
        if status_filter:
            query = query.filter(Device.status == status_filter)
        return query.order_by(Device.created_at.desc(), Device.id.desc()).all()

    def create_device(
        self,
        db: Session,
        *,
        user: User,
        device_name: str,
        description: str | None = None,
    ) -> Device:
        if self._session_taken(db, device_name):
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A device with this session id already exists",
            )

        try:
            session = self.gateway.create_session(device_name, webhook_url=self.webhook_url(device_name))
        except WhatsAppGatewayError as exc:
            request_metrics.record_gateway_failure("create_session")
            logger.error("create session failed tenant_id=%s name=%s error=%s", user.tenant_id, device_name, exc)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to create WhatsApp session",
            ) from exc

        if self._session_taken(db, session.session_id):
            # o gateway devolveu um id já usado: libera a sessão recém-criada
            self._release_session(session.session_id)
            raise HTTPException(
                status_code=status.HTTP_400_BAD_REQUEST,
                detail="A device with this session id already exists",
            )

        device = Device(
            device_id=session.session_id,
            device_name=device_name,
            description=description,
            status="disconnected",
            is_active=True,
            is_deleted=False,
            messages_sent=0,
            messages_received=0,
            tenant_id=user.tenant_id,
            created_by=user.id,
        )
        db.add(device)
        db.commit()
        db.refresh(device)
        logger.info("device created device_id=%s tenant_id=%s", device.device_id, device.tenant_id)
        return device

    @staticmethod
    def _session_taken(db: Session, session_id: str) -> bool:
        return db.query(Device.id).filter(Device.device_id == session_id).first() is not None

    def _release_session(self, session_id: str) -> None:
        try:
            self.gateway.stop_session(session_id)
        except WhatsAppGatewayError as exc:
            request_metrics.record_gateway_failure("stop_session")
            logger.warning("orphan session not stopped session=%s error=%s", session_id, exc)

    def update_device(self, db: Session, *, tenant_id: int, device_id: str, changes: dict[str, Any]) -> Device:
        device = self.get_device(db, tenant_id=tenant_id, device_id=device_id)
        for field in ("device_name", "description", "is_active"):
            if field in changes and changes[field] is not None:
                setattr(device, field, changes[field])
        db.commit()
        db.refresh(device)
        return device

    def _stop_quietly(self, device: Device) -> None:
        try:
            self.gateway.stop_session(device.device_id)
        except WhatsAppGatewayError as exc:
            request_metrics.record_gateway_failure("stop_session")
            logger.warning("stop session failed device_id=%s error=%s", device.device_id, exc)

    def delete_device(self, db: Session, *, tenant_id: int, device_id: str) -> dict[str, str]:
        device = self.get_device(db, tenant_id=tenant_id, device_id=device_id)
        if device.status == "connected":
            self._stop_quietly(device)
        device.is_deleted = True
        device.status = "disconnected"
        db.commit()
        logger.info("device deleted device_id=%s tenant_id=%s", device_id, tenant_id)
        return {"message": "Device deleted successfully"}

    def disconnect_device(self, db: Session, *, tenant_id: int, device_id: str) -> Device:
        device = self.get_device(db, tenant_id=tenant_id, device_id=device_id)
        self._stop_quietly(device)
        device.status = "disconnected"
        device.qr_code = None
        device.qr_code_expires_at = None
        db.commit()
        db.refresh(device)
        return device

    # ------------------------------------------------------------------
    # Pareamento
    # ------------------------------------------------------------------
    def generate_qr_code(self, db: Session, *, tenant_id: int, device_id: str) -> dict[str, Any]:
        device = self.get_device(db, tenant_id=tenant_id, device_id=device_id)
        if device.status == "connected":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Device is already connected")

        try:
            qr = self.gateway.request_qr(device.device_id, webhook_url=self.webhook_url(device.device_id))
        except WhatsAppGatewayError as exc:
            request_metrics.record_gateway_failure("request_qr")
            device.status = "error"
            device.error_message = str(exc)
            db.commit()
            logger.error("qr generation failed device_id=%s error=%s", device_id, exc)
            raise HTTPException(
                status_code=status.HTTP_502_BAD_GATEWAY,
                detail="Failed to generate QR code",
            ) from exc

        expires_at = utcnow() + timedelta(seconds=QR_CODE_TTL_SECONDS)
        device.qr_code = qr.qr_code
        device.qr_code_expires_at = expires_at
        device.status = "connecting"
        device.error_message = None
        db.commit()
        return {"qr_code": qr.qr_code, "expires_at": expires_at}

    def _apply_gateway_state(self, device: Device, state: str | None, phone_number: str | None = None) -> str:
        new_status = normalize_gateway_state(state)
        if device.status != new_status:
            logger.info(
                "device status changed device_id=%s from=%s to=%s",
                device.device_id,
                device.status,
                new_status,
            )
        device.status = new_status
        if new_status == "connected":
            device.last_seen = utcnow()
            device.qr_code = None
            device.qr_code_expires_at = None
            device.error_message = None
            if phone_number:
                device.phone_number = phone_number
        return new_status

    def get_device_status(self, db: Session, *, tenant_id: int, device_id: str) -> dict[str, Any]:
        device = self.get_device(db, tenant_id=tenant_id, device_id=device_id)
        try:
            gateway_status = self.gateway.get_session_status(device.device_id)
        except WhatsAppGatewayError as exc:
            request_metrics.record_gateway_failure("get_session_status")
            logger.warning("status check failed device_id=%s error=%s", device_id, exc)
            return {"device_id": device.device_id, "status": "error", "last_seen": device.last_seen}

        self._apply_gateway_state(device, gateway_status.state, gateway_status.phone_number)
        db.commit()
        return {"device_id": device.device_id, "status": device.status, "last_seen": device.last_seen}

    # ------------------------------------------------------------------
    # Envio
    # ------------------------------------------------------------------
    @staticmethod
    def _gateway_payload(data: dict[str, Any]) -> dict[str, Any]:
        payload: dict[str, Any] = {"chatId": data["phone_number"], "content": data["content"]}
        if data.get("message_type") and data["message_type"] != "text":
            payload["type"] = data["message_type"]
        if data.get("caption"):
            payload["caption"] = data["caption"]
        if data.get("reply_to_message_id"):
            payload["replyTo"] = data["reply_to_message_id"]
        if data.get("mentioned_phone_numbers"):
            payload["mentioned"] = list(data["mentioned_phone_numbers"])
        return payload

    def send_message(self, db: Session, *, user: User, data: dict[str, Any]) -> Message:
        device = (
            self._device_query(db, user.tenant_id)
            .filter(Device.device_id == data["device_id"])
            .first()
        )
        if not device:
            raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Device not found")
        if not device.is_active:
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Device is not active")
        if device.status != "connected":
            raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Device is not connected")

        message = Message(
            device_id=device.device_id,
            phone_number=data["phone_number"],
            message_type=data.get("message_type") or "text",
            content=data["content"],
            caption=data.get("caption"),
            group_id=data.get("group_id"),
            reply_to_message_id=data.get("reply_to_message_id"),
            mentioned_phone_numbers=list(data.get("mentioned_phone_numbers") or []),
            broadcast=bool(data.get("broadcast")),
            tenant_id=user.tenant_id,
            sent_by=user.id,
            sent_at=utcnow(),
            is_deleted=False,
        )

        try:
            result = self.gateway.send_message(device.device_id, self._gateway_payload(data))
        except WhatsAppGatewayError as exc:
            request_metrics.record_gateway_failure("send_message")
            message.status = "failed"
            message.error_message = str(exc)
            db.add(message)
            db.commit()
            db.refresh(message)
            logger.error(
                "send failed device_id=%s tenant_id=%s message_id=%s error=%s",
                device.device_id,
                user.tenant_id,
                message.id,
                exc,
            )
            raise HTTPException(status_code=status.HTTP_502_BAD_GATEWAY, detail="Failed to send message") from exc

        now = utcnow()
        message.status = "sent"
        message.whatsapp_message_id = result.message_id
        db.add(message)
        device.messages_sent = (device.messages_sent or 0) + 1
        device.last_message_at = now
        self._bump_contact(db, tenant_id=user.tenant_id, phone_number=message.phone_number, outbound=True, when=now)
        db.commit()
        db.refresh(message)
        return message

    @staticmethod
    def _bump_contact(db: Session, *, tenant_id: int, phone_number: str | None, outbound: bool, when) -> None:
        if not phone_number:
            return
        contact = (
            db.query(Contact)
            .filter(
                Contact.tenant_id == tenant_id,
                Contact.phone_number.in_(phone_variants(phone_number)),
                Contact.is_deleted.is_(False),
            )
            .first()
        )
        if not contact:
            return
        if outbound:
            contact.messages_sent = (contact.messages_sent or 0) + 1
        else:
            contact.messages_received = (contact.messages_received or 0) + 1
        contact.last_message_at = when

    # ------------------------------------------------------------------
    # Webhook
    # ------------------------------------------------------------------
    def handle_webhook(self, db: Session, *, session_id: str, event: dict[str, Any]) -> dict[str, Any]:
        """Apply a gateway callback: session state, inbound message or delivery ack."""
        device = (
            db.query(Device)
            .filter(Device.device_id == session_id, Device.is_deleted.is_(False))
            .first()
        )
        if not device:
            logger.info("webhook ignored: unknown session=%s", session_id)
            return {"handled": False}

        event_name = str(event.get("event") or "")
        payload = event.get("payload") or {}
        handled = True

        if event_name == "session.status":
            self._apply_gateway_state(device, payload.get("status"))
        elif event_name == "message":
            if payload.get("fromMe"):
                handled = False
            else:
                now = utcnow()
                device.messages_received = (device.messages_received or 0) + 1
                device.last_message_at = now
                self._bump_contact(
                    db,
                    tenant_id=device.tenant_id,
                    phone_number=_chat_phone(payload.get("from")),
                    outbound=False,
                    when=now,
                )
        elif event_name == "message.ack":
            handled = self._apply_ack(db, device=device, payload=payload)
        else:
            handled = False

        db.commit()
        logger.info(
            "webhook processed session=%s event=%s handled=%s",
            session_id,
            event_name,
            handled,
        )
        return {"handled": handled}

    @staticmethod
    def _apply_ack(db: Session, *, device: Device, payload: dict[str, Any]) -> bool:
        whatsapp_id = payload.get("id")
        new_status = _ACK_STATUS.get(payload.get("ack"))
        if not whatsapp_id or not new_status:
            return False
        message = (
            db.query(Message)
            .filter(
                Message.tenant_id == device.tenant_id,
                Message.whatsapp_message_id == whatsapp_id,
                Message.is_deleted.is_(False),
            )
            .first()
        )
        if not message:
            return False
        if not advance_message_status(message, new_status):
            logger.info(
                "stale ack ignored message_id=%s status=%s ack_status=%s",
                message.id,
                message.status,
                new_status,
            )
        return True


def build_gateway(provider: str = WHATSAPP_PROVIDER) -> WhatsAppGateway:
    if provider == "waha":
        return WahaGateway()
    if provider != "mock":
        logger.warning("unknown WHATSAPP_PROVIDER=%s, using mock", provider)
    return MockWhatsAppGateway()


_service: WhatsAppService | None = None


def get_whatsapp_service() -> WhatsAppService:
    global _service
    if _service is None:
        _service = WhatsAppService(build_gateway())
        logger.info("whatsapp gateway selected provider=%s", type(_service.gateway).__name__)
    return _service
