from fastapi import APIRouter

from entitlements.core.settings import settings

router = APIRouter(tags=["health"])


@router.get("/health")
async def health():
    return {
        "status": "ok",
        "service": "entitlements-api",
        "environment": settings.app_env,
        "quota_backend": settings.quota_backend,
    }
