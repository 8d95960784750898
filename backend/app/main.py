"""Expose the dairy billing FastAPI app and enforce local development CORS defaults."""

import logging
import os
import re
from contextlib import asynccontextmanager
from typing import Iterable

from fastapi import FastAPI, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from .migrations import run_database_migrations
from .routers import (
    deliveries_router,
    invoices_router,
    ledger_router,
    payments_router,
    subscriptions_router,
    vacations_router,
)
from .services.errors import (
    BillingConflictError,
    BillingError,
    BillingValidationError,
    LedgerConsistencyError,
    RecordNotFoundError,
    StoreUnavailableError,
)

LOGGER = logging.getLogger(__name__)

LOCAL_DEVELOPMENT_ORIGIN = "http://localhost:5173"
LOCAL_DEVELOPMENT_ORIGINS = {
    LOCAL_DEVELOPMENT_ORIGIN,
    "http://localhost:5174",
}
LOCALHOST_ORIGIN_REGEX = r"https?://(localhost|127\.0\.0\.1|0\.0\.0\.0)(:\d+)?$"

DEFAULT_ALLOWED_ORIGINS = {
    *LOCAL_DEVELOPMENT_ORIGINS,
    "http://127.0.0.1:5173",
    "http://0.0.0.0:5173",
    "http://127.0.0.1:5174",
    "http://localhost:4173",
    "http://127.0.0.1:4173",
}


def _normalize_origin(origin: str) -> str | None:
    stripped = origin.strip()
    if not stripped:
        return None
    return stripped.rstrip("/")


def _read_allowed_origins(raw_origins: Iterable[str]) -> list[str]:
    normalized = {_normalize_origin(origin) for origin in raw_origins}
    return sorted({origin for origin in normalized if origin})


def _split_raw_origins(raw_value: str) -> list[str]:
    """Split a raw origin string using commas or whitespace as separators."""

    return [origin for origin in re.split(r"[\s,]+", raw_value) if origin]


def _load_allowed_origins_from_env() -> list[str]:
    raw_value = os.getenv("BACKEND_ALLOWED_ORIGINS")
    if not raw_value:
        return []
    return _read_allowed_origins(_split_raw_origins(raw_value))


def _resolve_allowed_origins() -> list[str]:
    env_origins = _load_allowed_origins_from_env()
    if env_origins:
        origins = list(env_origins)
    else:
        origins = _read_allowed_origins(DEFAULT_ALLOWED_ORIGINS)

    missing_dev_origins = [
        origin for origin in LOCAL_DEVELOPMENT_ORIGINS if origin not in origins
    ]
    if missing_dev_origins:
        # The local frontend dev servers are always allowed.
        origins = _read_allowed_origins([*origins, *missing_dev_origins])

    return origins


def _read_bool_env(name: str, default: bool = True) -> bool:
    raw = os.getenv(name)
    if raw is None:
        return default
    return raw.strip().lower() in {"1", "true", "yes", "on"}


def ensure_database_is_ready() -> None:
    """Apply pending database migrations when the service starts."""

    if not _read_bool_env("RUN_MIGRATIONS_ON_STARTUP", True):
        LOGGER.info("Startup migrations disabled via RUN_MIGRATIONS_ON_STARTUP")
        return
    LOGGER.info("Ensuring database schema is up to date before serving requests")
    run_database_migrations()


@asynccontextmanager
async def lifespan(_: FastAPI):
    ensure_database_is_ready()
    yield


app = FastAPI(title="Dairy Billing API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_resolve_allowed_origins(),
    allow_origin_regex=LOCALHOST_ORIGIN_REGEX,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


def _status_for(exc: BillingError) -> int:
    if isinstance(exc, RecordNotFoundError):
        return status.HTTP_404_NOT_FOUND
    if isinstance(exc, BillingValidationError):
        return status.HTTP_400_BAD_REQUEST
    if isinstance(exc, BillingConflictError):
        return status.HTTP_409_CONFLICT
    if isinstance(exc, StoreUnavailableError):
        return status.HTTP_503_SERVICE_UNAVAILABLE
    return status.HTTP_500_INTERNAL_SERVER_ERROR


@app.exception_handler(BillingError)
async def handle_billing_error(request: Request, exc: BillingError) -> JSONResponse:
    status_code = _status_for(exc)
    if isinstance(exc, LedgerConsistencyError) or status_code >= 500:
        LOGGER.error(
            "Billing operation failed",
            exc_info=exc,
            extra={"path": request.url.path, "error_type": type(exc).__name__},
        )
    return JSONResponse(status_code=status_code, content={"detail": str(exc)})


app.include_router(deliveries_router, prefix="/deliveries", tags=["deliveries"])
app.include_router(invoices_router, prefix="/invoices", tags=["invoices"])
app.include_router(payments_router, prefix="/payments", tags=["payments"])
app.include_router(ledger_router, prefix="/ledger", tags=["ledger"])
app.include_router(subscriptions_router, prefix="/subscriptions", tags=["subscriptions"])
app.include_router(vacations_router, prefix="/vacations", tags=["vacations"])


@app.get("/", tags=["health"])
def read_root() -> dict[str, str]:
    """Return a simple health check response."""
    return {"status": "ok"}
