from __future__ import annotations

import json
import logging
from typing import Any

import httpx

from app.core.config import WAHA_API_KEY, WAHA_API_URL, WAHA_TIMEOUT_SECONDS
from app.whatsapp.base import (
    GatewayQRCode,
    GatewaySendResult,
    GatewaySession,
    GatewayStatus,
    WhatsAppGateway,
    WhatsAppGatewayError,
    safe_json,
    sanitize_payload,
)

logger = logging.getLogger(__name__)


class WahaGateway(WhatsAppGateway):
    """HTTP client for a WAHA (WhatsApp HTTP API) server.

    One request per call: no retries, no backoff. Responses are treated as
    opaque JSON and only the fields we persist are read.
    """

    INTEGRATION_NAME = "waha"

    def __init__(
        self,
        base_url: str = WAHA_API_URL,
        *,
        api_key: str = WAHA_API_KEY,
        timeout: float = WAHA_TIMEOUT_SECONDS,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.api_key = api_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self) -> dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self.api_key:
            headers["Authorization"] = f"Bearer {self.api_key}"
        return headers

    def _request(
        self,
        method: str,
        path: str,
        *,
        operation: str,
        payload: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        url = f"{self.base_url}{path}"
        try:
            with httpx.Client(timeout=self.timeout, transport=self._transport) as client:
                response = client.request(method, url, headers=self._headers(), json=payload)
        except httpx.HTTPError as exc:
            logger.warning(
                "waha request failed operation=%s url=%s error=%s",
                operation,
                url,
                exc,
            )
            raise WhatsAppGatewayError(f"WAHA unreachable: {exc}", operation=operation) from exc

        body_text = response.text
        if not 200 <= response.status_code < 300:
            logger.warning(
                "waha error operation=%s status=%s body=%s",
                operation,
                response.status_code,
                body_text[:500],
            )
            raise WhatsAppGatewayError(
                f"WAHA {response.status_code}: {body_text[:200]}",
                status_code=response.status_code,
                operation=operation,
            )

        if not body_text.strip():
            return {}
        try:
            data = response.json()
        except json.JSONDecodeError:
            return {"raw": body_text}
        if not isinstance(data, dict):
            return {"data": data}
        logger.debug("waha response operation=%s body=%s", operation, safe_json(sanitize_payload(data)))
        return data

    @staticmethod
    def _session_body(name: str, webhook_url: str | None) -> dict[str, Any]:
        body: dict[str, Any] = {"name": name}
        if webhook_url:
            body["config"] = {"webhooks": {"all": webhook_url}}
        return body

    def create_session(self, name: str, *, webhook_url: str | None = None) -> GatewaySession:
        data = self._request(
            "POST",
            "/api/sessions/add",
            operation="create_session",
            payload=self._session_body(name, webhook_url),
        )
        session_id = data.get("name") or data.get("id") or name
        return GatewaySession(session_id=str(session_id), raw=data)

    def request_qr(self, session_id: str, *, webhook_url: str | None = None) -> GatewayQRCode:
        data = self._request(
            "POST",
            "/api/sessions/add",
            operation="request_qr",
            payload=self._session_body(session_id, webhook_url),
        )
        qr_code = data.get("qr") or data.get("qrCode")
        if not qr_code:
            raise WhatsAppGatewayError("WAHA returned no QR code", operation="request_qr")
        return GatewayQRCode(qr_code=str(qr_code), raw=data)

    def get_session_status(self, session_id: str) -> GatewayStatus:
        data = self._request("GET", f"/api/sessions/{session_id}", operation="get_session_status")
        me = data.get("me") or {}
        phone = me.get("id") if isinstance(me, dict) else None
        if phone and "@" in phone:
            phone = phone.split("@", 1)[0]
        return GatewayStatus(state=str(data.get("state") or data.get("status") or ""), phone_number=phone, raw=data)

    def send_message(self, session_id: str, payload: dict[str, Any]) -> GatewaySendResult:
        data = self._request(
            "POST",
            f"/api/sessions/{session_id}/send",
            operation="send_message",
            payload=payload,
        )
        message_id = data.get("id") or data.get("messageId")
        return GatewaySendResult(message_id=str(message_id) if message_id else None, raw=data)

    def stop_session(self, session_id: str) -> None:
        self._request("POST", f"/api/sessions/{session_id}/stop", operation="stop_session")
