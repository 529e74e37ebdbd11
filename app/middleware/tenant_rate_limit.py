from __future__ import annotations

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from app.core.rate_limiter import InMemoryRateLimiterService, RateLimiterService
from app.middleware.route_templates import route_template
from app.services.auth import TokenError, decode_token

EXEMPT_PATHS = {"/", "/health"}


class TenantRateLimitMiddleware(BaseHTTPMiddleware):
    def __init__(self, app, *, rate_limiter: RateLimiterService | None = None) -> None:
        super().__init__(app)
        self._rate_limiter = rate_limiter or InMemoryRateLimiterService()

    async def dispatch(self, request: Request, call_next):
        if request.url.path in EXEMPT_PATHS:
            return await call_next(request)

        endpoint = route_template(request)

        decision = self._rate_limiter.check(key=_rate_limit_key(request), endpoint=endpoint)
        if not decision.allowed:
            return JSONResponse(
                status_code=429,
                content={"detail": "Too many requests"},
                headers={
                    "Retry-After": str(decision.retry_after_seconds),
                    "X-RateLimit-Limit": str(decision.limit),
                    "X-RateLimit-Remaining": str(decision.remaining),
                },
            )

        response = await call_next(request)
        response.headers["X-RateLimit-Limit"] = str(decision.limit)
        response.headers["X-RateLimit-Remaining"] = str(decision.remaining)
        return response


def _rate_limit_key(request: Request) -> str:
    tenant_id = _extract_tenant_id(request)
    if tenant_id:
        return f"tenant:{tenant_id}"
    client = request.client.host if request.client else "unknown"
    return f"ip:{client}"


def _extract_tenant_id(request: Request) -> str | None:
    authorization = request.headers.get("Authorization") or ""
    scheme, _, token = authorization.partition(" ")
    if scheme.lower() != "bearer" or not token:
        return None
    try:
        payload = decode_token(token.strip())
    except TokenError:
        return None
    tenant_id = payload.get("tenantId")
    return str(tenant_id) if tenant_id is not None else None
