import hmac

from starlette.requests import Request

from entitlements.core.errors import error_response
from entitlements.core.settings import settings

# Probes and API docs stay reachable without a key.
OPEN_PATH_PREFIXES = (
    "/health",
    "/docs",
    "/openapi.json",
    "/redoc",
)


def _key_matches(provided: str) -> bool:
    expected = settings.gateway_api_key
    return bool(expected) and hmac.compare_digest(provided.encode(), expected.encode())


async def api_key_auth_middleware(request: Request, call_next):
    """Require x-api-key on every API route when the service sits behind the gateway."""
    if not settings.gateway_auth_enabled or request.url.path.startswith(OPEN_PATH_PREFIXES):
        return await call_next(request)
    if not _key_matches(request.headers.get("x-api-key", "")):
        return error_response(
            request,
            code="unauthorized",
            message="Unauthorized: invalid or missing x-api-key",
            status_code=401,
        )
    return await call_next(request)
