"""
auth/dependencies.py -- Request guards, composed as FastAPI Depends() helpers.

A guard is a plain function taking the Request. It returns None to let the
request through and raises an AuthError to stop it. guard_chain() runs an
ordered list of guards before the handler and stops at the first rejection.

  access_guard        -- finds a token, verifies it, attaches Claims to
                         request.state.claims. Raises Unauthenticated.
  role_guard(*roles)  -- reads request.state.claims and raises Forbidden if
                         the role is not in the required set. Must run after
                         access_guard in the same chain.

Token lookup order (first match wins):
  1. "jwt" cookie -- set by POST /auth/login (httpOnly, SameSite=Strict).
  2. Authorization: Bearer <token> header -- API clients.

TokenMalformed and TokenExpired both become Unauthenticated. The distinction
is logged (reason only, never the token) and not shown to the client.

Usage:
    @router.post("/products")
    def create(request: Request, claims: Claims = Depends(require_owner)): ...

Layer rule: may import fastapi (Request) because this module is part of the
FastAPI dependency injection system. No imports from api/ or catalog/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Request

from auth.errors import Forbidden, TokenError, Unauthenticated
from auth.models import Claims, Role
from auth.tokens import TokenVerifier

logger = logging.getLogger("shopgate.auth")

COOKIE_NAME = "jwt"
_BEARER_PREFIX = "Bearer "

Guard = Callable[[Request], None]


def extract_token(request: Request) -> str | None:
    """Return the candidate token from cookie or Bearer header, or None."""
    token = request.cookies.get(COOKIE_NAME)
    if token:
        return token
    auth_header = request.headers.get("Authorization", "")
    if auth_header.startswith(_BEARER_PREFIX):
        return auth_header[len(_BEARER_PREFIX) :].strip() or None
    return None


def access_guard(request: Request) -> None:
    """Reject unless the request carries a valid token; attach its claims."""
    token = extract_token(request)
    if token is None:
        raise Unauthenticated()
    verifier: TokenVerifier = request.app.state.token_verifier
    try:
        claims = verifier.verify(token)
    except TokenError as exc:
        logger.info("Rejected %s token on %s %s", exc.reason, request.method, request.url.path)
        raise Unauthenticated() from exc
    request.state.claims = claims


def role_guard(*roles: Role) -> Guard:
    """Build a guard admitting only the given roles."""
    required = frozenset(roles)

    def guard(request: Request) -> None:
        claims: Claims | None = getattr(request.state, "claims", None)
        if claims is None:
            # Chain misconfigured: role_guard placed before access_guard.
            raise Unauthenticated()
        if claims.role not in required:
            logger.info(
                "Forbidden: %s lacks %s on %s",
                claims.subject_id,
                sorted(r.value for r in required),
                request.url.path,
            )
            raise Forbidden()

    return guard


def guard_chain(*guards: Guard) -> Callable[[Request], Claims]:
    """Compose guards into one dependency that returns the resolved claims.

    Guards run in the given order; the first to raise ends the request and
    later guards (and the handler) never run.
    """

    def dependency(request: Request) -> Claims:
        for guard in guards:
            guard(request)
        return request.state.claims

    return dependency


require_identity = guard_chain(access_guard)
require_owner = guard_chain(access_guard, role_guard(Role.OWNER))


# ---------------------------------------------------------------------------
# Cookie helpers
# ---------------------------------------------------------------------------


def set_auth_cookie(response, token: str, max_age: int, secure: bool) -> None:
    """Write the token as the httpOnly "jwt" cookie on the response.

    httponly=True: JS cannot read the cookie (XSS mitigation).
    samesite="strict": never sent on cross-site requests (CSRF mitigation).
    secure: only sent over HTTPS; tied to ENVIRONMENT=production.
    max_age: matches the token TTL so cookie and token expire together.
    """
    response.set_cookie(
        COOKIE_NAME,
        value=token,
        httponly=True,
        samesite="strict",
        secure=secure,
        max_age=max_age,
    )


def clear_auth_cookie(response) -> None:
    response.delete_cookie(COOKIE_NAME, httponly=True, samesite="strict")
