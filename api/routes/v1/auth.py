"""
api/routes/v1/auth.py -- Registration, login, and session endpoints.

Routes:
  POST /api/v1/auth/register   -- create a GUEST identity (public)
  POST /api/v1/auth/login      -- password login; returns token and sets jwt cookie (public)
  POST /api/v1/auth/logout     -- clears the cookie (public)
  GET  /api/v1/auth/me         -- claims of the presented token (requires auth)

Security:
  [H2] POST /login is rate-limited per client IP (LOGIN_RATE_LIMIT).
  [C1] AuthService.login() equalizes timing between unknown email and wrong
       password -- never inline a store lookup + verify here.
  [M5] Cache-Control: no-store on login responses.

register and login are plain `def` handlers: bcrypt is slow and CPU-bound,
and FastAPI runs sync handlers in its thread pool instead of on the event loop.
Failures are raised as AuthError subclasses and rendered by api/main.py.
"""

from __future__ import annotations

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from api.limiter import limiter
from api.models import IdentityResponse, LoginRequest, LoginResponse, MeResponse, RegisterRequest
from auth.dependencies import clear_auth_cookie, require_identity, set_auth_cookie
from auth.models import Claims
from auth.service import AuthService
from core.config import get_settings

# Auth policy:
# - POST /api/v1/auth/register: public -- anyone may create a GUEST identity
# - POST /api/v1/auth/login:    public -- login endpoint must be unauthenticated
# - POST /api/v1/auth/logout:   public -- clearing a cookie needs no prior auth
# - GET  /api/v1/auth/me:       requires auth (require_identity)
router = APIRouter()


@router.post("/auth/register", response_model=IdentityResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> IdentityResponse:
    """Register a new identity. The role is always GUEST; asking for OWNER is refused."""
    service: AuthService = request.app.state.auth_service
    identity = service.register(
        email=body.email,
        display_name=body.display_name,
        password=body.password,
        requested_role=body.role,
    )
    return IdentityResponse.from_identity(identity)


@limiter.limit(get_settings().login_rate_limit)  # [H2] must be ABOVE @router to preserve FastAPI introspection
@router.post("/auth/login", response_model=LoginResponse)
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with email and password.

    The token is returned in the body for API clients and set as the httpOnly
    jwt cookie for browsers. Both expire after the configured TTL.
    """
    service: AuthService = request.app.state.auth_service
    settings = request.app.state.settings
    token = service.login(body.email, body.password)

    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=token.access_token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=token.expires_in,
            user=MeResponse.from_claims(token.claims),
        ).model_dump(mode="json"),
    )
    set_auth_cookie(resp, token.access_token, max_age=token.expires_in, secure=settings.secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/logout")
async def logout() -> JSONResponse:
    """Clear the jwt cookie. The token itself stays valid until it expires."""
    resp = JSONResponse(content={"message": "Logged out."})
    clear_auth_cookie(resp)
    return resp


@router.get("/auth/me", response_model=MeResponse)
async def me(claims: Claims = Depends(require_identity)) -> MeResponse:
    """Return the identity claims carried by the presented token."""
    return MeResponse.from_claims(claims)
