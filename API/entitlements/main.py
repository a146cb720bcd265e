from fastapi import FastAPI
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from entitlements.api.chat import router as chat_router
from entitlements.api.health import router as health_router
from entitlements.api.learning_paths import router as learning_paths_router
from entitlements.api.metrics import router as metrics_router
from entitlements.api.modules import router as modules_router
from entitlements.api.payments import router as payments_router
from entitlements.api.students import router as students_router
from entitlements.api.usage import router as usage_router
from entitlements.api.webhook import router as webhook_router
from entitlements.core.app_metrics import metrics_middleware
from entitlements.core.auth import api_key_auth_middleware
from entitlements.core.bootstrap import initialize_database
from entitlements.core.errors import (
    EngineError,
    engine_exception_handler,
    http_exception_handler,
    request_id_middleware,
    unhandled_exception_handler,
    validation_exception_handler,
)
from entitlements.core.logging import configure_logging
from entitlements.core.settings import settings
from entitlements.storage.database import engine

configure_logging(settings.log_level)

app = FastAPI(title="Learning Path Entitlements API", version="0.1.0")
app.include_router(health_router)
app.include_router(usage_router)
app.include_router(payments_router)
app.include_router(modules_router)
app.include_router(chat_router)
app.include_router(webhook_router)
app.include_router(learning_paths_router)
app.include_router(students_router)
app.include_router(metrics_router)
app.middleware("http")(metrics_middleware)
app.middleware("http")(api_key_auth_middleware)
app.middleware("http")(request_id_middleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)
app.add_exception_handler(EngineError, engine_exception_handler)
app.add_exception_handler(StarletteHTTPException, http_exception_handler)
app.add_exception_handler(RequestValidationError, validation_exception_handler)
app.add_exception_handler(Exception, unhandled_exception_handler)


@app.on_event("startup")
async def on_startup():
    await initialize_database(engine)
