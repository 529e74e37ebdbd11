from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Protocol


class WhatsAppGatewayError(Exception):
    """Raised when the external gateway errors or answers with a non-2xx status."""

    def __init__(self, message: str, *, status_code: int | None = None, operation: str | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.operation = operation


@dataclass
class GatewaySession:
    session_id: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayQRCode:
    qr_code: str
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewayStatus:
    state: str
    phone_number: str | None = None
    raw: dict[str, Any] = field(default_factory=dict)


@dataclass
class GatewaySendResult:
    message_id: str | None
    raw: dict[str, Any] = field(default_factory=dict)


class WhatsAppGateway(Protocol):
    def create_session(self, name: str, *, webhook_url: str | None = None) -> GatewaySession:
        ...

    def request_qr(self, session_id: str, *, webhook_url: str | None = None) -> GatewayQRCode:
        ...

    def get_session_status(self, session_id: str) -> GatewayStatus:
        ...

    def send_message(self, session_id: str, payload: dict[str, Any]) -> GatewaySendResult:
        ...

    def stop_session(self, session_id: str) -> None:
        ...


# Estados do WAHA -> status local do device
GATEWAY_STATE_MAP = {
    "WORKING": "connected",
    "CONNECTED": "connected",
    "SCAN_QR_CODE": "connecting",
    "STARTING": "connecting",
    "CONNECTING": "connecting",
    "STOPPED": "disconnected",
    "DISCONNECTED": "disconnected",
    "FAILED": "error",
    "ERROR": "error",
}


def normalize_gateway_state(state: str | None) -> str:
    return GATEWAY_STATE_MAP.get((state or "").strip().upper(), "disconnected")


SENSITIVE_KEYS = {"api_key", "apikey", "authorization", "token", "secret", "password"}


def _mask_value(value: Any) -> Any:
    if value is None:
        return None
    text = str(value)
    if len(text) <= 4:
        return "****"
    return f"****{text[-4:]}"


def sanitize_payload(payload: dict[str, Any]) -> dict[str, Any]:
    def _sanitize(value: Any) -> Any:
        if isinstance(value, dict):
            return {key: _sanitize_value(key, inner) for key, inner in value.items()}
        if isinstance(value, list):
            return [_sanitize(item) for item in value]
        return value

    def _sanitize_value(key: str, value: Any) -> Any:
        if key.lower() in SENSITIVE_KEYS:
            return _mask_value(value)
        return _sanitize(value)

    return _sanitize(payload)


def safe_json(payload: dict[str, Any]) -> str:
    try:
        return json.dumps(payload, ensure_ascii=False, default=str)
    except (TypeError, ValueError):
        return "{}"
