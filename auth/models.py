"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic beyond projections).
Mirrors the approach in catalog/models.py -- dataclasses own domain shape;
stores and services do the work.

Three shapes of "who is this":
  Identity     -- the persisted record, including password_hash.
  SafeIdentity -- Identity minus password_hash. Every response and every
                  downstream collaborator (e.g. product ownership) gets this.
  Claims       -- what a token says about its bearer. Snapshotted at login and
                  never re-checked against the store, so it can go stale.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum


class Role(str, Enum):
    """Closed set of permission tiers. GUEST is the default for every new identity."""

    GUEST = "guest"
    OWNER = "owner"

    @classmethod
    def parse(cls, value: Role | str) -> Role:
        """Resolve a role case-insensitively. Raises ValueError for anything outside the set."""
        if isinstance(value, Role):
            return value
        return cls(str(value).strip().lower())


@dataclass
class Identity:
    """A registered user account.

    password_hash is None only on rows fetched through the safe lookups
    (IdentityStore.find_by_email / find_by_id). It is never empty once
    persisted -- the store refuses to insert without one.

    created_at / updated_at are ISO 8601 strings set by the store on write.
    """

    email: str
    display_name: str
    role: Role = Role.GUEST
    id: str | None = None
    password_hash: str | None = None
    created_at: str | None = None
    updated_at: str | None = None

    def to_safe(self) -> SafeIdentity:
        return SafeIdentity(
            id=self.id or "",
            email=self.email,
            display_name=self.display_name,
            role=self.role,
            created_at=self.created_at or "",
            updated_at=self.updated_at or "",
        )


@dataclass(frozen=True)
class SafeIdentity:
    """Projection of Identity with no credential material."""

    id: str
    email: str
    display_name: str
    role: Role
    created_at: str = ""
    updated_at: str = ""


@dataclass(frozen=True)
class Claims:
    """Identity claims carried by a token.

    issued_at / expires_at are POSIX seconds. The token is valid while
    now < expires_at.
    """

    subject_id: str
    email: str
    display_name: str
    role: Role
    issued_at: int
    expires_at: int


@dataclass(frozen=True)
class AuthToken:
    """An encoded, signed token together with the claims it carries."""

    access_token: str
    claims: Claims

    @property
    def expires_in(self) -> int:
        return self.claims.expires_at - self.claims.issued_at
