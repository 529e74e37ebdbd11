from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, FastAPI
from fastapi.testclient import TestClient

from app.core.metrics import InMemoryRequestMetrics, request_metrics
from app.core.rate_limiter import InMemoryRateLimiterService
from app.middleware.tenant_rate_limit import TenantRateLimitMiddleware
from app.services.auth import ACCESS_TOKEN_TYPE, create_token
from tests.api_helpers import bearer


class FakeClock:
    def __init__(self) -> None:
        self.now = 1000.0

    def __call__(self) -> float:
        return self.now


def _token_for_tenant(tenant_id: int) -> str:
    return create_token({"sub": "1", "tenantId": tenant_id}, token_type=ACCESS_TOKEN_TYPE)


def test_rate_limit_is_isolated_per_key() -> None:
    service = InMemoryRateLimiterService(limit=2, window_seconds=60)

    first_tenant_a = service.check(key="tenant:a", endpoint="/messages")
    second_tenant_a = service.check(key="tenant:a", endpoint="/messages")
    blocked_tenant_a = service.check(key="tenant:a", endpoint="/messages")

    tenant_b_still_allowed = service.check(key="tenant:b", endpoint="/messages")

    assert first_tenant_a.allowed is True
    assert second_tenant_a.remaining == 0
    assert blocked_tenant_a.allowed is False
    assert blocked_tenant_a.retry_after_seconds >= 1
    assert tenant_b_still_allowed.allowed is True


def test_rate_limit_window_slides() -> None:
    clock = FakeClock()
    service = InMemoryRateLimiterService(limit=1, window_seconds=60, clock=clock)

    assert service.check(key="ip:1", endpoint="/x").allowed is True
    assert service.check(key="ip:1", endpoint="/x").allowed is False

    clock.now += 61
    assert service.check(key="ip:1", endpoint="/x").allowed is True


def _limited_app(limit: int, limiter: InMemoryRateLimiterService | None = None) -> FastAPI:
    app = FastAPI()
    limiter = limiter or InMemoryRateLimiterService(limit=limit, window_seconds=60)
    app.add_middleware(TenantRateLimitMiddleware, rate_limiter=limiter)

    @app.get("/api/v1/messages")
    def messages():
        return {"ok": True}

    @app.get("/api/v1/users/{user_id}")
    def user(user_id: int):
        return {"id": user_id}

    @app.get("/health")
    def health():
        return {"ok": True}

    return app


def test_middleware_returns_429_only_when_limit_exceeded() -> None:
    headers = bearer(_token_for_tenant(10))

    with TestClient(_limited_app(1)) as client:
        ok = client.get("/api/v1/messages", headers=headers)
        blocked = client.get("/api/v1/messages", headers=headers)
        other_tenant = client.get("/api/v1/messages", headers=bearer(_token_for_tenant(11)))

    assert ok.status_code == 200
    assert ok.headers["X-RateLimit-Limit"] == "1"
    assert blocked.status_code == 429
    assert blocked.json() == {"detail": "Too many requests"}
    assert "Retry-After" in blocked.headers
    assert other_tenant.status_code == 200


def test_forged_token_falls_back_to_client_address() -> None:
    with TestClient(_limited_app(1)) as client:
        client.get("/api/v1/messages", headers=bearer("forged"))
        blocked = client.get("/api/v1/messages")

    assert blocked.status_code == 429


def test_limit_is_shared_by_all_ids_of_a_route() -> None:
    headers = bearer(_token_for_tenant(10))

    with TestClient(_limited_app(1)) as client:
        first = client.get("/api/v1/users/1", headers=headers)
        other_id = client.get("/api/v1/users/2", headers=headers)

    assert first.status_code == 200
    assert other_id.status_code == 429


def test_included_router_routes_are_keyed_by_template() -> None:
    limiter = InMemoryRateLimiterService(limit=1, window_seconds=60)
    app = _limited_app(1, limiter)
    groups = APIRouter(prefix="/api/v1/groups")

    @groups.get("/stats")
    def group_stats():
        return {"total": 0}

    @groups.get("/{group_id}")
    def group(group_id: int):
        return {"id": group_id}

    app.include_router(groups)
    headers = bearer(_token_for_tenant(10))

    with TestClient(app) as client:
        first = client.get("/api/v1/groups/1", headers=headers)
        other_id = client.get("/api/v1/groups/2", headers=headers)
        stats = client.get("/api/v1/groups/stats", headers=headers)

    assert first.status_code == 200
    assert other_id.status_code == 429
    assert stats.status_code == 200
    assert limiter.tracked_keys() == 2


def test_unknown_paths_share_a_single_bucket() -> None:
    limiter = InMemoryRateLimiterService(limit=1, window_seconds=60)

    with TestClient(_limited_app(1, limiter)) as client:
        first = client.get("/random/abc")
        second = client.get("/random/xyz")

    assert first.status_code == 404
    assert second.status_code == 429
    assert limiter.tracked_keys() == 1


def test_idle_buckets_are_dropped_after_window() -> None:
    clock = FakeClock()
    service = InMemoryRateLimiterService(limit=5, window_seconds=60, clock=clock)
    for index in range(3):
        service.check(key=f"ip:{index}", endpoint="/x")
    assert service.tracked_keys() == 3

    clock.now += 61
    service.check(key="ip:9", endpoint="/x")

    assert service.tracked_keys() == 1


def test_health_is_exempt_from_rate_limit() -> None:
    with TestClient(_limited_app(1)) as client:
        responses = [client.get("/health") for _ in range(3)]

    assert all(response.status_code == 200 for response in responses)


def test_metrics_snapshot_per_tenant() -> None:
    metrics = InMemoryRequestMetrics()

    metrics.observe(endpoint="/messages", method="GET", status_code=200, duration_ms=10, tenant_id="1")
    metrics.observe(endpoint="/messages", method="GET", status_code=500, duration_ms=30, tenant_id="1")
    metrics.observe(endpoint="/contacts", method="GET", status_code=200, duration_ms=20, tenant_id="2")

    snapshot = metrics.snapshot_per_tenant()

    assert snapshot["1"] == {"requests": 2, "errors": 1, "avg_duration_ms": 20.0}
    assert snapshot["2"]["requests"] == 1
    assert metrics.snapshot()["GET /messages"]["error_count"] == 1


def test_gateway_failures_are_counted_per_operation() -> None:
    metrics = InMemoryRequestMetrics()

    metrics.record_gateway_failure("send_message")
    metrics.record_gateway_failure("send_message")
    metrics.record_gateway_failure("request_qr")

    assert metrics.snapshot_gateway_failures() == {"send_message": 2, "request_qr": 1}


def test_request_id_is_returned_in_response_header(client):
    response = client.get("/health")

    assert response.status_code == 200
    UUID(response.headers["X-Request-ID"])


def test_incoming_request_id_is_echoed(client):
    response = client.get("/health", headers={"X-Request-ID": "abc-123"})

    assert response.headers["X-Request-ID"] == "abc-123"


def test_tenant_metrics_endpoint_reports_only_own_tenant(client, admin, make_member):
    client.get("/api/v1/auth/profile", headers=admin["headers"])

    response = client.get("/api/v1/internal/metrics/tenant", headers=admin["headers"])
    viewer = make_member("viewer")
    denied = client.get("/api/v1/internal/metrics/tenant", headers=viewer["headers"])

    assert response.status_code == 200
    body = response.json()
    assert body["tenantId"] == admin["tenant_id"]
    assert body["metrics"]["requests"] >= 1
    assert denied.status_code == 403


def test_request_metrics_are_grouped_by_route_template(client, admin):
    client.get("/api/v1/contacts/987654", headers=admin["headers"])
    client.get("/api/v1/contacts/987655", headers=admin["headers"])
    client.get("/api/v1/nao-existe/987656", headers=admin["headers"])

    snapshot = request_metrics.snapshot()

    assert snapshot["GET /api/v1/contacts/{contact_id}"]["total_requests"] >= 2
    assert "GET <unmatched>" in snapshot
    assert not any("98765" in key for key in snapshot)
