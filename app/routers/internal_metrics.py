from __future__ import annotations

from fastapi import APIRouter, Depends

from app.core.config import API_PREFIX
from app.core.metrics import request_metrics
from app.core.permissions import Permission
from app.deps import require_permission
from app.models.user import User

router = APIRouter(prefix=f"{API_PREFIX}/internal/metrics", tags=["internal-metrics"])


@router.get("/tenant")
def tenant_metrics(user: User = Depends(require_permission(Permission.CAN_MANAGE_GROUPS))):
    tenant_key = str(user.tenant_id)
    return {
        "tenantId": user.tenant_id,
        "metrics": request_metrics.snapshot_per_tenant().get(tenant_key, {}),
    }
