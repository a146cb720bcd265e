"""Process-local metrics: request latency and errors per route, quota outcomes, and derived alerts."""
from __future__ import annotations

import time
from collections import Counter, deque
from threading import Lock

from starlette.requests import Request
from starlette.responses import Response

_LATENCY_SAMPLES = 500
_ERROR_RATE_ALERT = 0.10
_LATENCY_P95_ALERT_MS = 2000
# Denials only alert once enough consume attempts were seen to mean something.
_QUOTA_DENIAL_ALERT = 0.5
_QUOTA_DENIAL_MIN_ATTEMPTS = 20

_lock = Lock()
_requests: Counter[str] = Counter()
_errors: Counter[str] = Counter()
_latencies: deque[float] = deque(maxlen=_LATENCY_SAMPLES)
_quota_events: Counter[str] = Counter()


def record_request(duration_sec: float, is_error: bool, route: str = "other") -> None:
    with _lock:
        _requests[route] += 1
        if is_error:
            _errors[route] += 1
        _latencies.append(duration_sec)


def record_quota_event(kind: str, outcome: str) -> None:
    """Count consume outcomes per resource kind, e.g. ('chat', 'consumed') or ('mcq', 'limit_exceeded')."""
    with _lock:
        _quota_events[f"{kind}:{outcome}"] += 1


def _percentile_ms(sorted_sec: list[float], fraction: float) -> float | None:
    if not sorted_sec:
        return None
    return round(sorted_sec[int((len(sorted_sec) - 1) * fraction)] * 1000, 2)


def get_metrics() -> dict:
    with _lock:
        requests = dict(_requests)
        errors = dict(_errors)
        latencies = sorted(_latencies)
        quota = dict(_quota_events)

    total = sum(requests.values())
    error_total = sum(errors.values())
    error_rate = error_total / total if total else 0.0
    p95 = _percentile_ms(latencies, 0.95)

    consumed = sum(v for k, v in quota.items() if k.endswith(":consumed"))
    denied = sum(v for k, v in quota.items() if k.endswith(":limit_exceeded"))
    attempts = consumed + denied

    alerts: list[str] = []
    if total and error_rate >= _ERROR_RATE_ALERT:
        alerts.append("high_error_rate")
    if p95 is not None and p95 >= _LATENCY_P95_ALERT_MS:
        alerts.append("high_latency_p95")
    if attempts >= _QUOTA_DENIAL_MIN_ATTEMPTS and denied / attempts >= _QUOTA_DENIAL_ALERT:
        alerts.append("high_quota_denial_rate")

    return {
        "request_count": total,
        "error_count": error_total,
        "error_rate": round(error_rate, 4),
        "latency_ms_p50": _percentile_ms(latencies, 0.50),
        "latency_ms_p95": p95,
        "routes": {route: {"requests": n, "errors": errors.get(route, 0)} for route, n in sorted(requests.items())},
        "quota_events": quota,
        "alerts": alerts,
    }


def reset_metrics() -> None:
    """Drop all counters (e.g. between tests)."""
    with _lock:
        _requests.clear()
        _errors.clear()
        _latencies.clear()
        _quota_events.clear()


async def metrics_middleware(request: Request, call_next) -> Response:
    """Time every API request; /health and /metrics are not counted."""
    path = request.url.path
    if path == "/health" or path.startswith("/metrics"):
        return await call_next(request)
    start = time.perf_counter()
    response = await call_next(request)
    route = request.scope.get("route")
    record_request(
        time.perf_counter() - start,
        response.status_code >= 400,
        getattr(route, "path", "other"),
    )
    return response
