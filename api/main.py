"""
api/main.py -- FastAPI application entry point for Shopgate.

Run with:      uvicorn asgi:app --reload

Middleware stack (outermost to innermost):
  1. TrustedHostMiddleware -- rejects requests with unexpected Host headers
  2. CORSMiddleware        -- adds CORS headers for allowed browser origins
  3. SlowAPIMiddleware     -- enforces per-route rate limits from api.limiter

Request guards are NOT middleware: they are per-route FastAPI dependencies
(auth/dependencies.py) so each route declares exactly the chain it needs.

Lifespan builds the object graph once (settings -> stores -> credential
store -> token issuer/verifier -> AuthService) and parks it on app.state.
Shutdown closes the stores symmetrically.
"""

from __future__ import annotations

import logging
import time
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.middleware.trustedhost import TrustedHostMiddleware
from fastapi.responses import JSONResponse
from slowapi.errors import RateLimitExceeded
from slowapi.middleware import SlowAPIMiddleware

from api.limiter import limiter
from api.models import ErrorDetail, ErrorResponse, HealthResponse
from api.routes.v1.auth import router as auth_router
from api.routes.v1.products import router as products_router
from api.routes.v1.users import router as users_router
from auth.credentials import CredentialStore
from auth.errors import AuthError, WeakPassword
from auth.policy import VIOLATION_MESSAGES, PasswordPolicy
from auth.service import AuthService
from auth.store import IdentityStore
from auth.tokens import TokenIssuer, TokenVerifier
from catalog.errors import CatalogError
from catalog.store import ProductStore
from core.config import get_settings

VERSION = "0.1.0"

# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)-5s %(name)s %(message)s",
    datefmt="%Y-%m-%d %H:%M:%S",
)
logger = logging.getLogger("shopgate.api")

_settings = get_settings()


# ---------------------------------------------------------------------------
# Lifespan -- modern startup / shutdown pattern (replaces @app.on_event)
# ---------------------------------------------------------------------------


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the auth object graph on startup and release stores on shutdown.

    The signing secret and TTL travel as a TokenConfig into the issuer and
    verifier. Nothing below the lifespan reads settings for them.
    """
    logger.info("Shopgate API starting up")
    settings = get_settings()
    app.state.settings = settings

    app.state.user_store = IdentityStore(settings.auth_db_url)
    app.state.catalog = ProductStore(settings.catalog_db_url)

    token_config = settings.token_config()
    app.state.token_verifier = TokenVerifier(token_config)
    app.state.auth_service = AuthService(
        store=app.state.user_store,
        credentials=CredentialStore(rounds=settings.bcrypt_rounds),
        issuer=TokenIssuer(token_config),
        policy=PasswordPolicy(),
    )
    if not app.state.user_store.has_owner():
        logger.warning("No owner identity exists -- run `python main.py create-owner` to provision one")
    logger.info(
        "Auth initialized (token_ttl=%ds, bcrypt_rounds=%d, secure_cookies=%s)",
        token_config.ttl_seconds,
        settings.bcrypt_rounds,
        settings.secure_cookies,
    )

    yield

    app.state.catalog.close()
    app.state.user_store.close()
    logger.info("Shopgate API shutdown complete")


# ---------------------------------------------------------------------------
# App instantiation
# ---------------------------------------------------------------------------

app = FastAPI(
    title="Shopgate API",
    description="Product catalog fronted by email/password authentication and role-gated access.",
    version=VERSION,
    lifespan=lifespan,
)

# ---------------------------------------------------------------------------
# Middleware stack
#
# Register in the order you want the request to encounter them:
# TrustedHost -> CORS -> SlowAPI.
# ---------------------------------------------------------------------------

app.add_middleware(
    TrustedHostMiddleware,
    allowed_hosts=_settings.allowed_hosts,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=_settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PATCH", "DELETE"],
    allow_headers=["Content-Type", "Authorization"],
    max_age=3600,
)

app.add_middleware(SlowAPIMiddleware)

# SlowAPI looks for app.state.limiter by convention.
app.state.limiter = limiter


# ---------------------------------------------------------------------------
# Request logging middleware
#
# Path and status only. Never headers or cookies -- they carry tokens.
# ---------------------------------------------------------------------------


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

app.include_router(auth_router, prefix="/api/v1", tags=["Auth"])
app.include_router(users_router, prefix="/api/v1", tags=["Users"])
app.include_router(products_router, prefix="/api/v1", tags=["Products"])


# ---------------------------------------------------------------------------
# Exception handlers
#
# Every handler renders the one ErrorResponse envelope through _error_json, so
# clients read error.code and never branch on the status to pick a schema.
# ---------------------------------------------------------------------------


def _error_json(status_code: int, code: str, message: str, **extra) -> JSONResponse:
    body = ErrorResponse(error=ErrorDetail(code=code, message=message, **extra))
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


@app.exception_handler(AuthError)
async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    """Render any auth-layer failure with its own status, code, and fixed message.

    WeakPassword additionally lists every violated rule: codes in
    `violations`, human-readable sentences in `detail`.
    """
    violations = None
    detail = exc.detail
    if isinstance(exc, WeakPassword):
        violations = list(exc.violations)
        detail = "; ".join(VIOLATION_MESSAGES[v] for v in exc.violations)
    response = _error_json(exc.status_code, exc.code, exc.message, detail=detail, violations=violations)
    if exc.status_code == 401:
        response.headers["WWW-Authenticate"] = "Bearer"
    return response


@app.exception_handler(CatalogError)
async def catalog_error_handler(request: Request, exc: CatalogError) -> JSONResponse:
    return _error_json(exc.status_code, exc.code, exc.message)


@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded) -> JSONResponse:
    """Return 429 with a structured error when a rate limit is exceeded."""
    response = _error_json(429, "rate_limited", "Too many requests.", detail=str(exc.detail))
    response.headers["Retry-After"] = str(int(getattr(exc, "retry_after", 60)))
    return response


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Return 422 with structured error when request body or query params fail validation.

    Only field locations and messages are echoed back, never the submitted
    input -- a rejected password must not round-trip into the response.
    """
    problems = [
        "{}: {}".format(".".join(str(p) for p in err.get("loc", ())), err.get("msg", "")) for err in exc.errors()
    ]
    return _error_json(422, "validation_error", "Request validation failed.", detail="; ".join(problems))


@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException) -> JSONResponse:
    """Return a structured error for all FastAPI/Starlette HTTP exceptions."""
    return _error_json(exc.status_code, f"http_{exc.status_code}", str(exc.detail))


@app.exception_handler(Exception)
async def generic_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    """Catch-all handler for unexpected server errors.

    The raw exception is written to the log only, never to the response body.
    """
    logger.exception("Unhandled exception on %s %s", request.method, request.url.path)
    return _error_json(500, "internal_error", "An unexpected error occurred.")


# ---------------------------------------------------------------------------
# Health endpoint
#
# Defined directly in main.py (not in a router) so it is always reachable
# regardless of router registration state. No auth, no rate limit.
# ---------------------------------------------------------------------------


@app.get("/api/v1/health", include_in_schema=True, tags=["Health"])
def health(request: Request) -> HealthResponse:
    """Return API liveness, version, and a database connectivity check."""
    components = {"app": "ok"}
    try:
        request.app.state.user_store.ping()
        request.app.state.catalog.ping()
        components["database"] = "ok"
    except Exception:
        logger.exception("Health check: database unreachable")
        components["database"] = "error"
    return HealthResponse(version=VERSION, components=components)
