import json

import httpx
import pytest

from app.whatsapp.base import WhatsAppGatewayError, normalize_gateway_state, sanitize_payload
from app.whatsapp.waha_provider import WahaGateway


def _gateway(handler, api_key: str = "k3y") -> WahaGateway:
    return WahaGateway("http://waha.local/", api_key=api_key, timeout=5, transport=httpx.MockTransport(handler))


def test_create_session_posts_name_and_webhook():
    seen = {}

    def handler(request: httpx.Request) -> httpx.Response:
        seen["method"] = request.method
        seen["url"] = str(request.url)
        seen["auth"] = request.headers.get("Authorization")
        seen["body"] = json.loads(request.content)
        return httpx.Response(201, json={"name": "loja-1", "status": "STARTING"})

    session = _gateway(handler).create_session("loja-1", webhook_url="http://api/hook/loja-1")

    assert session.session_id == "loja-1"
    assert seen["method"] == "POST"
    assert seen["url"] == "http://waha.local/api/sessions/add"
    assert seen["auth"] == "Bearer k3y"
    assert seen["body"] == {"name": "loja-1", "config": {"webhooks": {"all": "http://api/hook/loja-1"}}}


def test_request_qr_reads_qr_field():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"qr": "data:image/png;base64,AAA"})

    qr = _gateway(handler).request_qr("loja-1")

    assert qr.qr_code == "data:image/png;base64,AAA"


def test_request_qr_without_qr_in_response_fails():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"status": "WORKING"})

    with pytest.raises(WhatsAppGatewayError) as exc:
        _gateway(handler).request_qr("loja-1")

    assert exc.value.operation == "request_qr"


def test_session_status_extracts_state_and_phone():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/sessions/loja-1"
        return httpx.Response(200, json={"state": "WORKING", "me": {"id": "5511900000000@c.us"}})

    status = _gateway(handler).get_session_status("loja-1")

    assert status.state == "WORKING"
    assert status.phone_number == "5511900000000"
    assert normalize_gateway_state(status.state) == "connected"


def test_send_message_returns_gateway_id():
    def handler(request: httpx.Request) -> httpx.Response:
        assert request.url.path == "/api/sessions/loja-1/send"
        assert json.loads(request.content)["chatId"] == "+5511999990000"
        return httpx.Response(200, json={"id": "true_5511999990000@c.us_ABC"})

    result = _gateway(handler).send_message("loja-1", {"chatId": "+5511999990000", "content": "oi"})

    assert result.message_id == "true_5511999990000@c.us_ABC"


def test_non_2xx_becomes_gateway_error_with_status():
    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(500, text="boom")

    with pytest.raises(WhatsAppGatewayError) as exc:
        _gateway(handler).send_message("loja-1", {"chatId": "1", "content": "x"})

    assert exc.value.status_code == 500
    assert exc.value.operation == "send_message"


def test_transport_error_becomes_gateway_error():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("refused", request=request)

    with pytest.raises(WhatsAppGatewayError) as exc:
        _gateway(handler).stop_session("loja-1")

    assert exc.value.status_code is None
    assert "unreachable" in str(exc.value)


def test_no_api_key_sends_no_authorization_header():
    def handler(request: httpx.Request) -> httpx.Response:
        assert "Authorization" not in request.headers
        return httpx.Response(200, text="")

    _gateway(handler, api_key="").stop_session("loja-1")


def test_unknown_states_map_to_disconnected():
    assert normalize_gateway_state("SCAN_QR_CODE") == "connecting"
    assert normalize_gateway_state("FAILED") == "error"
    assert normalize_gateway_state(None) == "disconnected"
    assert normalize_gateway_state("something-new") == "disconnected"


def test_sanitize_payload_masks_secrets():
    cleaned = sanitize_payload({"token": "abc", "nested": {"api_key": "zzz", "name": "ok"}})

    assert cleaned["token"] != "abc"
    assert cleaned["nested"]["api_key"] != "zzz"
    assert cleaned["nested"]["name"] == "ok"
