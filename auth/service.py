"""
auth/service.py -- Registration, login, and identity management.

AuthService orchestrates the leaf components:
  PasswordPolicy  -- strength rules
  CredentialStore -- bcrypt hash / verify
  IdentityStore   -- persistence, email uniqueness
  TokenIssuer     -- signed tokens

Registration never grants OWNER. Owners are provisioned out-of-band through
provision() (see main.py create-owner), which runs the same policy and
uniqueness checks but accepts any role.

Login never distinguishes "no such email" from "wrong password": both raise
the same InvalidCredentials, and both paths run one bcrypt verify so response
time does not leak which one happened.

All methods are synchronous and may block on bcrypt. Route handlers that call
them are plain `def` so FastAPI runs them in its thread pool.

Logging: emails and outcome codes only. Plaintext passwords, hashes, and
tokens are never logged.

Layer rule: no imports from api/ or catalog/.
"""

from __future__ import annotations

import logging

from auth.credentials import CredentialStore
from auth.errors import DuplicateEmail, IdentityNotFound, InvalidCredentials, RoleEscalationDenied
from auth.models import AuthToken, Identity, Role, SafeIdentity
from auth.policy import PasswordPolicy, enforce_password_policy, normalize_display_name
from auth.store import IdentityStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("shopgate.auth")


class AuthService:
    def __init__(
        self,
        store: IdentityStore,
        credentials: CredentialStore,
        issuer: TokenIssuer,
        policy: PasswordPolicy | None = None,
    ) -> None:
        self.store = store
        self.credentials = credentials
        self.issuer = issuer
        self.policy = policy or PasswordPolicy()

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(
        self,
        email: str,
        display_name: str,
        password: str,
        requested_role: Role | str | None = None,
    ) -> SafeIdentity:
        """Create a GUEST identity. No token is issued.

        Checks run in a fixed order: role escalation, display name, password
        policy, email uniqueness. Nothing is written unless all of them pass.

        Raises:
            RoleEscalationDenied: requested_role resolves to OWNER.
            InvalidDisplayName:   display_name is blank after stripping.
            WeakPassword:         password fails one or more policy rules.
            DuplicateEmail:       email already registered (pre-check or insert race).
            ValueError:           requested_role is not a known role.
        """
        if requested_role is not None and Role.parse(requested_role) is Role.OWNER:
            logger.warning("Registration rejected: role escalation attempt for %s", email)
            raise RoleEscalationDenied()

        identity = self._create(email, display_name, password, Role.GUEST)
        logger.info("Registered identity %s", identity.id)
        return identity

    def provision(self, email: str, display_name: str, password: str, role: Role | str) -> SafeIdentity:
        """Create an identity with any role. Out-of-band use only (CLI, seeding)."""
        identity = self._create(email, display_name, password, Role.parse(role))
        logger.info("Provisioned %s identity %s", identity.role.value, identity.id)
        return identity

    def _create(self, email: str, display_name: str, password: str, role: Role) -> SafeIdentity:
        display_name = normalize_display_name(display_name)
        enforce_password_policy(self.policy, password)
        if self.store.find_by_email(email) is not None:
            logger.info("Registration rejected: duplicate email %s", email)
            raise DuplicateEmail()
        password_hash = self.credentials.hash(password)
        # The UNIQUE constraint is the real arbiter -- insert() raises
        # DuplicateEmail if a concurrent request won the race.
        created = self.store.insert(
            Identity(email=email, display_name=display_name, password_hash=password_hash, role=role)
        )
        return created.to_safe()

    # ------------------------------------------------------------------
    # Login
    # ------------------------------------------------------------------

    def login(self, email: str, password: str) -> AuthToken:
        """Verify credentials and mint a token snapshotting the identity's claims.

        Raises InvalidCredentials for unknown email and wrong password alike.
        """
        identity = self.store.find_by_email_with_secret(email)
        if identity is None or not identity.password_hash:
            # Equalize timing -- do NOT return early before running bcrypt.
            self.credentials.burn(password)
            logger.info("Login failed for %s", email)
            raise InvalidCredentials()
        if not self.credentials.verify(password, identity.password_hash):
            logger.info("Login failed for %s", email)
            raise InvalidCredentials()

        token = self.issuer.issue(
            subject_id=identity.id,
            email=identity.email,
            display_name=identity.display_name,
            role=identity.role,
        )
        logger.info("Login succeeded for identity %s", identity.id)
        return token

    # ------------------------------------------------------------------
    # Identity management
    # ------------------------------------------------------------------

    def get_identity(self, identity_id: str) -> SafeIdentity:
        identity = self.store.find_by_id(identity_id)
        if identity is None:
            raise IdentityNotFound()
        return identity.to_safe()

    def list_identities(self) -> list[SafeIdentity]:
        return [i.to_safe() for i in self.store.list_identities()]

    def update_identity(
        self,
        identity_id: str,
        *,
        email: str | None = None,
        display_name: str | None = None,
        password: str | None = None,
        role: Role | str | None = None,
    ) -> SafeIdentity:
        """Apply a partial update. Omitted (None) fields are left unchanged.

        A new password goes through the same policy as registration and is
        re-hashed. A new email is pre-checked for a friendlier error, but the
        UNIQUE constraint decides concurrent races.

        Tokens issued before the update keep their old claims until expiry.
        Callers decide who may change role; this method does not.
        """
        current = self.store.find_by_id(identity_id)
        if current is None:
            raise IdentityNotFound()

        fields: dict = {}
        if email is not None and email != current.email:
            if self.store.find_by_email(email) is not None:
                raise DuplicateEmail()
            fields["email"] = email
        if display_name is not None:
            fields["display_name"] = normalize_display_name(display_name)
        if password is not None:
            enforce_password_policy(self.policy, password)
            fields["password_hash"] = self.credentials.hash(password)
        if role is not None:
            fields["role"] = Role.parse(role)

        if not fields:
            return current.to_safe()

        updated = self.store.update(identity_id, **fields)
        if updated is None:
            raise IdentityNotFound()
        logger.info("Updated identity %s (%s)", identity_id, ", ".join(sorted(fields)))
        return updated.to_safe()

    def delete_identity(self, identity_id: str) -> None:
        if not self.store.delete(identity_id):
            raise IdentityNotFound()
        logger.info("Deleted identity %s", identity_id)
