from __future__ import annotations

from dataclasses import dataclass
from threading import Lock


@dataclass
class EndpointMetric:
    total_requests: int = 0
    total_duration_ms: float = 0.0
    error_count: int = 0

    def record(self, status_code: int, duration_ms: float) -> None:
        self.total_requests += 1
        self.total_duration_ms += duration_ms
        if status_code >= 400:
            self.error_count += 1

    @property
    def avg_duration_ms(self) -> float:
        if not self.total_requests:
            return 0.0
        return round(self.total_duration_ms / self.total_requests, 2)


class InMemoryRequestMetrics:
    def __init__(self) -> None:
        self._metrics: dict[tuple[str, str], EndpointMetric] = {}
        self._tenant_metrics: dict[str, EndpointMetric] = {}
        self._gateway_failures: dict[str, int] = {}
        self._lock = Lock()

    def observe(
        self,
        endpoint: str,
        method: str,
        status_code: int,
        duration_ms: float,
        tenant_id: str | None = None,
    ) -> None:
        with self._lock:
            self._metrics.setdefault((endpoint, method), EndpointMetric()).record(status_code, duration_ms)
            if tenant_id:
                self._tenant_metrics.setdefault(tenant_id, EndpointMetric()).record(status_code, duration_ms)

    def record_gateway_failure(self, operation: str) -> None:
        with self._lock:
            self._gateway_failures[operation] = self._gateway_failures.get(operation, 0) + 1

    def snapshot(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                f"{method} {endpoint}": {
                    "total_requests": metric.total_requests,
                    "total_duration_ms": round(metric.total_duration_ms, 2),
                    "avg_duration_ms": metric.avg_duration_ms,
                    "error_count": metric.error_count,
                }
                for (endpoint, method), metric in self._metrics.items()
            }

    def snapshot_per_tenant(self) -> dict[str, dict[str, float | int]]:
        with self._lock:
            return {
                tenant_id: {
                    "requests": metric.total_requests,
                    "errors": metric.error_count,
                    "avg_duration_ms": metric.avg_duration_ms,
                }
                for tenant_id, metric in self._tenant_metrics.items()
            }

    def snapshot_gateway_failures(self) -> dict[str, int]:
        with self._lock:
            return dict(self._gateway_failures)


request_metrics = InMemoryRequestMetrics()
