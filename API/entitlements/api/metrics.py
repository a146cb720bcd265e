from __future__ import annotations

from fastapi import APIRouter

from entitlements.core.app_metrics import get_metrics
from entitlements.core.resilience import get_breakers_status

router = APIRouter(prefix="/metrics", tags=["metrics"])


@router.get("/app")
async def app_metrics():
    """Request latency (p50/p95), error rate, quota outcomes and alerts."""
    out = get_metrics()
    breakers = get_breakers_status()
    if any(b.get("state") == "open" for b in breakers.values()):
        out["alerts"] = list(out.get("alerts", [])) + ["downstream_circuit_open"]
    return out


@router.get("/resilience")
async def resilience_metrics():
    return {"breakers": get_breakers_status()}
