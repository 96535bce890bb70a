"""
api/main.py -- FastAPI application entry point for the admin account service.

Run with:  uvicorn api.main:app --reload

Middleware stack (outermost to innermost):
  1. CORSMiddleware    -- adds CORS headers for the admin panel origins
  2. SlowAPIMiddleware -- enforces per-route rate limits from api.limiter
  3. log_requests      -- one access-log line per request

Per-request check order for protected routes: rate limit (middleware) ->
token resolution -> role / permission gate (auth.dependencies) -> handler.

Lifespan opens the account store and notifier on startup, seeds the first
super_admin from BOOTSTRAP_ADMIN_* when the store is empty, and disposes the
engine on shutdown.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware
from starlette.exceptions import HTTPException as StarletteHTTPException

from api.limiter import limiter
from api.models import ApiInfoResponse, ErrorDetail, ErrorResponse, HealthResponse, Viewer
from api.routes.auth import router as auth_router
from api.routes.stats import router as stats_router
from api.routes.users import router as users_router
from auth.dependencies import get_optional_identity
from auth.errors import AuthError, EmailNotVerified, PendingApproval
from auth.lifecycle import AccountService
from auth.models import TokenClaims
from auth.notifications import Notifier
from auth.store import AccountStore
from core.config import Settings, get_settings

VERSION = "1.0.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("marketing_admin.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# First-run provisioning
# ---------------------------------------------------------------------------


def bootstrap_admin(store: AccountStore, notifier: Notifier, settings: Settings) -> Optional[str]:
    """Seed a super_admin from BOOTSTRAP_ADMIN_* if the store has no accounts.

    Returns the new account id, or None when nothing was seeded. A weak
    bootstrap password is a startup error -- the policy applies to everyone.
    """
    if not settings.bootstrap_admin_email or not settings.bootstrap_admin_password:
        return None
    if store.has_accounts():
        return None
    service = AccountService(store, notifier, settings=settings)
    account = service.create_admin(
        settings.bootstrap_admin_email,
        settings.bootstrap_admin_password,
        settings.bootstrap_admin_name,
    )
    logger.info("Seeded bootstrap super_admin %s", account.id)
    return account.id


# ---------------------------------------------------------------------------
# Lifespan
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Open shared resources on startup and release them on shutdown."""
    logger.info("Admin account service starting up")
    app.state.account_store = AccountStore(_settings.database_url)
    app.state.notifier = Notifier(_settings)
    bootstrap_admin(app.state.account_store, app.state.notifier, _settings)
    if not _settings.resend_api_key:
        logger.warning("RESEND_API_KEY not set -- lifecycle emails will be logged, not sent")

    yield

    app.state.account_store.close()
    logger.info("Admin account service shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Marketing Site Admin API",
    description="Admin accounts, sessions and permissions for the marketing site CMS.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
# ---------------------------------------------------------------------------

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origin_list,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


@app.middleware("http")
async def log_requests(request: Request, call_next):
    start = time.perf_counter()
    response = await call_next(request)
    ms = (time.perf_counter() - start) * 1000
    logger.info(
        "%s %s %d %.1fms %s",
        request.method,
        request.url.path,
        response.status_code,
        ms,
        request.client.host if request.client else "unknown",
    )
    return response


# ---------------------------------------------------------------------------
# Router registration
# ---------------------------------------------------------------------------

app.include_router(auth_router, prefix="/api/admin", tags=["Auth"])
app.include_router(users_router, prefix="/api/admin", tags=["Users"])
app.include_router(stats_router, prefix="/api/admin", tags=["Dashboard"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# All handlers return the same ErrorResponse envelope so API clients can parse
# errors uniformly without inspecting status codes to choose a schema.
# ---------------------------------------------------------------------------


def _error(status_code: int, code: str, message: str, detail=None, **flags) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, detail=detail), **flags)
    return JSONResponse(status_code=status_code, content=body.to_content())


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render lifecycle and gate failures.

    The two login rejections that lead to a follow-up screen carry a flag the
    admin panel keys on: requiresVerification or requiresApproval.
    """
    flags: dict = {}
    if isinstance(exc, EmailNotVerified):
        flags["requires_verification"] = True
    elif isinstance(exc, PendingApproval):
        flags["requires_approval"] = True
    response = _error(exc.status_code, exc.code, exc.message, exc.detail, **flags)
    response.headers["Cache-Control"] = "no-store"
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    retry_after = int(getattr(exc, "retry_after", 60))
    response = _error(429, "rate_limited", "Too many requests. Please try again later.", str(exc.detail))
    response.headers["Retry-After"] = str(retry_after)
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 400 with field-level detail when the body or params fail validation.

    Only location and message are echoed back -- never the submitted input,
    which may be a password.
    """
    fields = [
        {"field": ".".join(str(p) for p in err.get("loc", ()) if p != "body"), "message": err.get("msg", "")}
        for err in exc.errors()
    ]
    return _error(400, "validation_error", "Request validation failed.", fields)


@app.exception_handler(StarletteHTTPException)
async def http_exception_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    """Return a structured error for FastAPI/Starlette HTTP exceptions (404 route, 405, ...)."""
    return _error(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is logged server-side. Clients see it only in DEBUG mode.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    detail = str(exc) if _settings.debug else None
    return _error(500, "internal_error", "An unexpected error occurred.", detail)


# ---------------------------------------------------------------------------
# Health and service info
#
# Defined directly in main.py (not in a router) so they are always reachable.
# No rate limit -- load balancer probes must not be throttled.
# ---------------------------------------------------------------------------


@app.get("/health", tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return liveness, version, and database reachability."""
    store: AccountStore = request.app.state.account_store
    database = "ok" if store.ping() else "error"
    return HealthResponse(version=VERSION, components={"app": "ok", "database": database})


@app.get("/api", response_model=ApiInfoResponse, tags=["Health"])
def api_info(identity: Optional[TokenClaims] = Depends(get_optional_identity)) -> ApiInfoResponse:
    """Describe the API. A valid token adds the caller's identity; a bad one is ignored."""
    viewer = Viewer(email=identity.email, role=identity.role) if identity else None
    return ApiInfoResponse(
        name="Marketing Site Admin API",
        version=VERSION,
        endpoints={"auth": "/api/admin/auth/*", "users": "/api/admin/users/*", "stats": "/api/admin/stats"},
        viewer=viewer,
    )
