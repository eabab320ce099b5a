"""
auth/tokens.py -- Signed identity tokens (JWT via python-jose, HS256).

Lifecycle of a token: Issued -> Valid -> Expired. There is no revoked state.
A token stops working only when the wall clock passes its exp claim or the
signing secret is rotated. The verifier does not consult the identity store,
so a role change or deletion takes effect only once old tokens expire.

Wire payload (exactly these keys, nothing else):
  sub   -- Identity.id
  email -- Identity.email at issuance
  name  -- Identity.display_name at issuance
  role  -- Identity.role at issuance ("guest" | "owner")
  iat   -- issued-at, POSIX seconds
  exp   -- expiry, POSIX seconds

Configuration arrives as a TokenConfig through the constructors. Nothing in
this module reads settings or the environment, so two issuers with different
secrets can coexist (tests, secret rotation drills).

Expiry is checked here rather than by python-jose so the clock can be injected:
verify(token, now=...) makes the validity window testable to the second.

Layer rule: no imports from api/ or catalog/. TokenConfig comes from core/.
"""

from __future__ import annotations

import time

from jose import JWTError, jwt

from auth.errors import TokenExpired, TokenMalformed
from auth.models import AuthToken, Claims, Role
from core.config import TokenConfig

_CLAIM_KEYS = frozenset({"sub", "email", "name", "role", "iat", "exp"})

# python-jose would otherwise reject expired tokens itself, using the real clock.
_DECODE_OPTIONS = {"verify_exp": False, "verify_aud": False}


def _now() -> int:
    return int(time.time())


class TokenIssuer:
    """Mints signed, time-bounded tokens."""

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    @property
    def ttl_seconds(self) -> int:
        return self._config.ttl_seconds

    def issue(
        self,
        subject_id: str,
        email: str,
        display_name: str,
        role: Role,
        now: int | None = None,
    ) -> AuthToken:
        issued_at = _now() if now is None else now
        claims = Claims(
            subject_id=subject_id,
            email=email,
            display_name=display_name,
            role=role,
            issued_at=issued_at,
            expires_at=issued_at + self._config.ttl_seconds,
        )
        payload = {
            "sub": claims.subject_id,
            "email": claims.email,
            "name": claims.display_name,
            "role": claims.role.value,
            "iat": claims.issued_at,
            "exp": claims.expires_at,
        }
        token = jwt.encode(payload, self._config.secret, algorithm=self._config.algorithm)
        return AuthToken(access_token=token, claims=claims)


class TokenVerifier:
    """Validates tokens minted by a TokenIssuer sharing the same secret."""

    def __init__(self, config: TokenConfig) -> None:
        self._config = config

    def verify(self, token: str, now: int | None = None) -> Claims:
        """Return the embedded claims unchanged, or raise.

        Raises:
            TokenMalformed: unparseable blob, bad signature, missing or unknown
                            claim keys, wrongly typed claims, unknown role.
            TokenExpired:   current time >= exp.
        """
        try:
            payload = jwt.decode(
                token,
                self._config.secret,
                algorithms=[self._config.algorithm],
                options=_DECODE_OPTIONS,
            )
        except JWTError as exc:
            raise TokenMalformed("token could not be decoded") from exc

        claims = _payload_to_claims(payload)
        current = _now() if now is None else now
        if current >= claims.expires_at:
            raise TokenExpired("token expired")
        return claims


def _payload_to_claims(payload: dict) -> Claims:
    keys = set(payload)
    if keys != _CLAIM_KEYS:
        missing = sorted(_CLAIM_KEYS - keys)
        unknown = sorted(keys - _CLAIM_KEYS)
        raise TokenMalformed(f"unexpected claim set (missing={missing}, unknown={unknown})")

    for key in ("sub", "email", "name", "role"):
        if not isinstance(payload[key], str):
            raise TokenMalformed(f"claim {key!r} must be a string")
    for key in ("iat", "exp"):
        # bool is an int subclass; a true/false timestamp is still malformed.
        if not isinstance(payload[key], int) or isinstance(payload[key], bool):
            raise TokenMalformed(f"claim {key!r} must be an integer")

    try:
        role = Role(payload["role"])
    except ValueError as exc:
        raise TokenMalformed("unknown role claim") from exc

    return Claims(
        subject_id=payload["sub"],
        email=payload["email"],
        display_name=payload["name"],
        role=role,
        issued_at=payload["iat"],
        expires_at=payload["exp"],
    )
