from __future__ import annotations

import logging
import uuid
from threading import Lock
from typing import Any

from app.whatsapp.base import (
    GatewayQRCode,
    GatewaySendResult,
    GatewaySession,
    GatewayStatus,
    WhatsAppGateway,
    WhatsAppGatewayError,
)

logger = logging.getLogger(__name__)


class MockWhatsAppGateway(WhatsAppGateway):
    """In-memory gateway for local development and tests.

    Sessions start in SCAN_QR_CODE once a QR is requested; call
    `mark_connected` (or the webhook) to simulate the phone scanning it.
    """

    def __init__(self) -> None:
        self._states: dict[str, str] = {}
        self._phones: dict[str, str] = {}
        self.sent: list[tuple[str, dict[str, Any]]] = []
        self.fail_operations: set[str] = set()
        self._lock = Lock()

    def _maybe_fail(self, operation: str) -> None:
        if operation in self.fail_operations:
            raise WhatsAppGatewayError(f"mock failure: {operation}", operation=operation)

    def create_session(self, name: str, *, webhook_url: str | None = None) -> GatewaySession:
        self._maybe_fail("create_session")
        session_id = f"{name}-{uuid.uuid4().hex[:8]}" if name else f"mock-{uuid.uuid4().hex[:10]}"
        with self._lock:
            self._states[session_id] = "STOPPED"
        return GatewaySession(session_id=session_id, raw={"name": session_id, "webhook": webhook_url})

    def request_qr(self, session_id: str, *, webhook_url: str | None = None) -> GatewayQRCode:
        self._maybe_fail("request_qr")
        with self._lock:
            self._states[session_id] = "SCAN_QR_CODE"
        return GatewayQRCode(qr_code=f"data:image/png;base64,MOCK-{session_id}", raw={"name": session_id})

    def get_session_status(self, session_id: str) -> GatewayStatus:
        self._maybe_fail("get_session_status")
        with self._lock:
            state = self._states.get(session_id, "STOPPED")
            phone = self._phones.get(session_id)
        return GatewayStatus(state=state, phone_number=phone, raw={"name": session_id, "state": state})

    def send_message(self, session_id: str, payload: dict[str, Any]) -> GatewaySendResult:
        self._maybe_fail("send_message")
        message_id = f"mock-{uuid.uuid4().hex[:10]}"
        with self._lock:
            self.sent.append((session_id, dict(payload)))
        logger.info("mock gateway send session=%s chat_id=%s", session_id, payload.get("chatId"))
        return GatewaySendResult(message_id=message_id, raw={"id": message_id})

    def stop_session(self, session_id: str) -> None:
        self._maybe_fail("stop_session")
        with self._lock:
            self._states[session_id] = "STOPPED"

    def mark_connected(self, session_id: str, phone_number: str | None = None) -> None:
        with self._lock:
            self._states[session_id] = "WORKING"
            if phone_number:
                self._phones[session_id] = phone_number
