import logging
import uuid

from fastapi import HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


class EngineError(Exception):
    """Base class for failures the engine reports to callers as structured errors."""

    code = "engine_error"
    status_code = 500

    def __init__(self, message: str, *, details=None):
        super().__init__(message)
        self.message = message
        self.details = details


class NotFoundError(EngineError):
    code = "not_found"
    status_code = 404


class InvalidRequestError(EngineError):
    code = "invalid_request"
    status_code = 400


class ConflictError(EngineError):
    code = "conflict"
    status_code = 409


class UnavailableError(EngineError):
    """Storage or downstream failure. Callers retry with backoff; never read as 'quota available'."""

    code = "unavailable"
    status_code = 503


def get_request_id(request: Request) -> str:
    return getattr(request.state, "request_id", "unknown")


def error_response(
    request: Request,
    *,
    code: str,
    message: str,
    status_code: int,
    details=None,
) -> JSONResponse:
    payload = {
        "success": False,
        "error": {
            "code": code,
            "message": message,
            "request_id": get_request_id(request),
            "details": details,
        },
    }
    return JSONResponse(status_code=status_code, content=payload)


async def engine_exception_handler(request: Request, exc: EngineError):
    if exc.status_code >= 500:
        logger.warning("Engine unavailable | request_id=%s | %s", get_request_id(request), exc.message)
    return error_response(
        request,
        code=exc.code,
        message=exc.message,
        status_code=exc.status_code,
        details=exc.details,
    )


_HTTP_ERROR_CODES = {
    401: "unauthorized",
    403: "forbidden",
    404: "not_found",
    405: "method_not_allowed",
}


async def http_exception_handler(request: Request, exc: HTTPException):
    return error_response(
        request,
        code=_HTTP_ERROR_CODES.get(exc.status_code, "http_error"),
        message=str(exc.detail),
        status_code=exc.status_code,
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    return error_response(
        request,
        code="validation_error",
        message="Request validation failed",
        status_code=422,
        details=jsonable_errors(exc),
    )


def jsonable_errors(exc: RequestValidationError) -> list[dict]:
    # ctx may carry exception instances that JSONResponse cannot encode.
    out = []
    for err in exc.errors():
        item = {k: v for k, v in err.items() if k != "ctx"}
        if "ctx" in err:
            item["ctx"] = {k: str(v) for k, v in err["ctx"].items()}
        out.append(item)
    return out


async def unhandled_exception_handler(request: Request, exc: Exception):
    logger.exception("Unhandled exception | request_id=%s", get_request_id(request), exc_info=exc)
    return error_response(
        request,
        code="internal_error",
        message="Internal server error",
        status_code=500,
    )


async def request_id_middleware(request: Request, call_next):
    incoming = request.headers.get("x-request-id")
    request.state.request_id = incoming or str(uuid.uuid4())
    response = await call_next(request)
    response.headers["x-request-id"] = request.state.request_id
    return response
