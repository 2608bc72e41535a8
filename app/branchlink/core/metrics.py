from __future__ import annotations

from dataclasses import dataclass

from prometheus_client import CollectorRegistry, Counter, Gauge, Histogram, generate_latest
from prometheus_client.exposition import CONTENT_TYPE_LATEST

from app.branchlink.core.config import settings


@dataclass
class MetricsSnapshot:
    content: bytes
    content_type: str


class Metrics:
    def __init__(self) -> None:
        self.enabled = bool(settings.METRICS_ENABLED)
        self._registry = None
        self._http_requests_total = None
        self._http_request_duration_ms = None
        self._idempotency_replay_total = None
        self._lock_wait_timeout_total = None
        self._state_conflict_total = None
        self._transfer_transitions_total = None
        self._requests_expired_total = None
        self._shortages_opened_total = None
        self._invariants_violation_total = None
        self._requests_by_status = None
        self._open_shortages = None
        if self.enabled:
            self._initialize_registry()

    def _initialize_registry(self) -> None:
        self._registry = CollectorRegistry()
        self._http_requests_total = Counter(
            "http_requests_total",
            "HTTP requests by route/method/status.",
            ["route", "method", "status"],
            registry=self._registry,
        )
        self._http_request_duration_ms = Histogram(
            "http_request_duration_ms",
            "HTTP request latency in milliseconds.",
            ["route", "method", "status"],
            buckets=(5, 10, 25, 50, 100, 250, 500, 1000, 2500, 5000, 10000),
            registry=self._registry,
        )
        self._idempotency_replay_total = Counter(
            "idempotency_replay_total",
            "Idempotent replay responses.",
            registry=self._registry,
        )
        self._lock_wait_timeout_total = Counter(
            "lock_wait_timeout_total",
            "Lock wait timeout occurrences.",
            registry=self._registry,
        )
        self._state_conflict_total = Counter(
            "transfer_state_conflict_total",
            "Transitions rejected because the request was not in the expected state.",
            ["action"],
            registry=self._registry,
        )
        self._transfer_transitions_total = Counter(
            "transfer_transitions_total",
            "Applied transfer request transitions by target status.",
            ["action", "status"],
            registry=self._registry,
        )
        self._requests_expired_total = Counter(
            "transfer_requests_expired_total",
            "Pending transfer requests moved to EXPIRED.",
            ["trigger"],
            registry=self._registry,
        )
        self._shortages_opened_total = Counter(
            "shortage_reports_opened_total",
            "Shortage reports opened because no donor branch was eligible.",
            registry=self._registry,
        )
        self._invariants_violation_total = Counter(
            "invariants_violation_total",
            "Integrity invariant violations.",
            ["check_id"],
            registry=self._registry,
        )
        self._requests_by_status = Gauge(
            "transfer_requests_by_status",
            "Transfer requests currently stored, by status.",
            ["status"],
            registry=self._registry,
        )
        self._open_shortages = Gauge(
            "shortage_reports_open",
            "Shortage reports still waiting for stock.",
            registry=self._registry,
        )

    def reset(self) -> None:
        if not self.enabled:
            return
        self._initialize_registry()

    def record_http_request(self, *, route: str, method: str, status_code: int, latency_ms: float) -> None:
        if not self.enabled:
            return
        labels = {"route": route, "method": method, "status": str(status_code)}
        self._http_requests_total.labels(**labels).inc()
        self._http_request_duration_ms.labels(**labels).observe(latency_ms)

    def increment_idempotency_replay(self) -> None:
        if not self.enabled:
            return
        self._idempotency_replay_total.inc()

    def increment_lock_wait_timeout(self) -> None:
        if not self.enabled:
            return
        self._lock_wait_timeout_total.inc()

    def increment_state_conflict(self, action: str) -> None:
        if not self.enabled:
            return
        self._state_conflict_total.labels(action=action).inc()

    def record_transition(self, *, action: str, status: str) -> None:
        if not self.enabled:
            return
        self._transfer_transitions_total.labels(action=action, status=status).inc()

    def increment_expired(self, trigger: str, count: int = 1) -> None:
        if not self.enabled or count <= 0:
            return
        self._requests_expired_total.labels(trigger=trigger).inc(count)

    def increment_shortage_opened(self) -> None:
        if not self.enabled:
            return
        self._shortages_opened_total.inc()

    def increment_invariant_violation(self, check_id: str, count: int = 1) -> None:
        if not self.enabled:
            return
        self._invariants_violation_total.labels(check_id=check_id).inc(count)

    def set_backlog(self, *, by_status: dict[str, int], open_shortages: int) -> None:
        if not self.enabled:
            return
        for status, count in by_status.items():
            self._requests_by_status.labels(status=status).set(count)
        self._open_shortages.set(open_shortages)

    def render(self) -> MetricsSnapshot:
        if not self.enabled:
            return MetricsSnapshot(content=b"metrics_disabled\n", content_type="text/plain")
        return MetricsSnapshot(content=generate_latest(self._registry), content_type=CONTENT_TYPE_LATEST)


metrics = Metrics()
