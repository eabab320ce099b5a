"""
auth/errors.py -- Exception taxonomy for the auth subsystem.

Every failure the auth layer can surface is an AuthError subclass with a
stable machine-readable code, a user-facing message, and the HTTP status
class it maps to. api/main.py installs one exception handler for AuthError,
so services and guards raise domain errors and never build HTTP responses.

TokenError and its subclasses are NOT AuthErrors: they never
reach the client. The AccessGuard collapses both into Unauthenticated and
keeps the distinction for logging only.

None of these carry secrets. Messages are fixed strings; the only variable
payload is the list of password policy violation codes.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for all client-visible auth failures."""

    code: str = "auth_error"
    message: str = "Authentication failed."
    status_code: int = 400

    def __init__(self, message: str | None = None) -> None:
        if message is not None:
            self.message = message
        super().__init__(self.message)

    @property
    def detail(self) -> str | None:
        return None


class WeakPassword(AuthError):
    code = "weak_password"
    message = "Password does not meet the strength requirements."
    status_code = 400

    def __init__(self, violations: list[str] | tuple[str, ...]) -> None:
        self.violations: tuple[str, ...] = tuple(violations)
        super().__init__()

    @property
    def detail(self) -> str:
        return ", ".join(self.violations)


class InvalidDisplayName(AuthError):
    code = "invalid_display_name"
    message = "Display name must not be blank."
    status_code = 400


class DuplicateEmail(AuthError):
    code = "duplicate_email"
    message = "Email already registered."
    status_code = 409


class RoleEscalationDenied(AuthError):
    code = "role_escalation_denied"
    message = "The owner role cannot be granted through registration."
    status_code = 403


class InvalidCredentials(AuthError):
    """Raised for unknown email AND wrong password -- the message must never differ."""

    code = "invalid_credentials"
    message = "Invalid email or password."
    status_code = 401


class Unauthenticated(AuthError):
    code = "unauthorized"
    message = "Authentication required."
    status_code = 401


class Forbidden(AuthError):
    code = "forbidden"
    message = "You do not have permission to perform this action."
    status_code = 403


class IdentityNotFound(AuthError):
    code = "not_found"
    message = "User not found."
    status_code = 404


# ---------------------------------------------------------------------------
# Token verification failures (internal only)
# ---------------------------------------------------------------------------


class TokenError(Exception):
    """A token could not be accepted. Never shown to clients."""

    reason: str = "invalid"


class TokenMalformed(TokenError):
    reason = "malformed"


class TokenExpired(TokenError):
    reason = "expired"
