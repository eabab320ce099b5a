"""
auth/store.py -- SQLAlchemy Core persistence layer for identities.

Pattern: Repository + Data Mapper (same as catalog/store.py).
IdentityStore is the repository; _row_to_identity is the mapper.
Service and route code never touches SQL directly.

Two lookup flavours by email:
  find_by_email()             -- safe projection, password_hash is always None.
  find_by_email_with_secret() -- includes password_hash. Login only.
Keeping them as distinct calls means a hash can only leak through code that
asked for it by name.

Uniqueness:
  UNIQUE(email) is enforced by the database. insert() and update() translate
  the IntegrityError into DuplicateEmail, so a check-then-act race between two
  concurrent registrations (or two updates to the same new email) still ends
  with exactly one winner.

Security:
  All queries use bound parameters. No f-strings in SQL.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone
from pathlib import Path

from sqlalchemy import Column, MetaData, String, Table, Text, create_engine, event, func, select
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.errors import DuplicateEmail
from auth.models import Identity, Role

_DEFAULT_DB_URL = f"sqlite:///{Path(__file__).parent / 'shopgate_auth.db'}"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_identities = Table(
    "identities",
    _metadata,
    Column("id", String(36), primary_key=True),  # uuid4
    Column("email", String(255), nullable=False, unique=True),
    Column("display_name", String(255), nullable=False),
    Column("password_hash", Text, nullable=False),
    Column("role", String(16), nullable=False, server_default=Role.GUEST.value),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Everything except password_hash -- the default projection.
_SAFE_COLUMNS = [c for c in _identities.c if c.name != "password_hash"]

_UPDATABLE_FIELDS = {"email", "display_name", "password_hash", "role"}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class IdentityStore:
    """Repository for Identity records.

    Usage:
        store = IdentityStore("sqlite:///:memory:")
        created = store.insert(Identity(email="a@b.co", display_name="A", password_hash=h))
        store.find_by_email("a@b.co")            # password_hash is None
        store.find_by_email_with_secret("a@b.co")  # password_hash populated
        store.close()
    """

    def __init__(self, db_url: str = _DEFAULT_DB_URL) -> None:
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def find_by_email(self, email: str) -> Identity | None:
        """Look up by exact email (case-sensitive). Safe projection."""
        with self.engine.connect() as conn:
            row = conn.execute(select(*_SAFE_COLUMNS).where(_identities.c.email == email)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_email_with_secret(self, email: str) -> Identity | None:
        """Look up by exact email including password_hash. Only login should call this."""
        with self.engine.connect() as conn:
            row = conn.execute(_identities.select().where(_identities.c.email == email)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def find_by_id(self, identity_id: str) -> Identity | None:
        """Look up by primary key. Safe projection."""
        with self.engine.connect() as conn:
            row = conn.execute(select(*_SAFE_COLUMNS).where(_identities.c.id == identity_id)).fetchone()
        return _row_to_identity(row) if row is not None else None

    def list_identities(self) -> list[Identity]:
        """Return every identity ordered by email. Safe projection."""
        with self.engine.connect() as conn:
            rows = conn.execute(select(*_SAFE_COLUMNS).order_by(_identities.c.email)).fetchall()
        return [_row_to_identity(r) for r in rows]

    def count_by_email(self, email: str) -> int:
        """Number of rows holding exactly this email.

        Test-support query: the suite uses it to check that UNIQUE(email) held.
        No service or route calls it.
        """
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_identities).where(_identities.c.email == email)
            ).scalar()
        return result or 0

    def has_owner(self) -> bool:
        """Return True if at least one OWNER identity exists."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count()).select_from(_identities).where(_identities.c.role == Role.OWNER.value)
            ).scalar()
        return (result or 0) > 0

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def insert(self, identity: Identity) -> Identity:
        """Persist a new identity and return it as stored (safe projection).

        Assigns id, created_at and updated_at. Raises DuplicateEmail if the
        email is already taken, ValueError if password_hash is empty.
        """
        if not identity.password_hash:
            raise ValueError("An identity cannot be persisted without a password hash.")
        now = _now_iso()
        identity_id = str(uuid.uuid4())
        try:
            with self.engine.connect() as conn:
                conn.execute(
                    _identities.insert().values(
                        id=identity_id,
                        email=identity.email,
                        display_name=identity.display_name,
                        password_hash=identity.password_hash,
                        role=Role.parse(identity.role).value,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        return Identity(
            id=identity_id,
            email=identity.email,
            display_name=identity.display_name,
            role=Role.parse(identity.role),
            created_at=now,
            updated_at=now,
        )

    def update(self, identity_id: str, **fields) -> Identity | None:
        """Update mutable fields and stamp updated_at.

        Accepted fields: email, display_name, password_hash, role.
        Unknown keys raise ValueError rather than being silently ignored.

        Returns the updated identity (safe projection), or None if identity_id
        was not found. Raises DuplicateEmail if the new email is taken.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown identity fields: {unknown!r}")
        if "password_hash" in fields and not fields["password_hash"]:
            raise ValueError("password_hash cannot be cleared.")
        if "role" in fields:
            fields["role"] = Role.parse(fields["role"]).value
        fields["updated_at"] = _now_iso()
        try:
            with self.engine.connect() as conn:
                result = conn.execute(_identities.update().where(_identities.c.id == identity_id).values(**fields))
                conn.commit()
        except IntegrityError as exc:
            raise DuplicateEmail() from exc
        if result.rowcount == 0:
            return None
        return self.find_by_id(identity_id)

    def delete(self, identity_id: str) -> bool:
        """Permanently delete an identity. Returns True if deleted, False if not found.

        Tokens already issued to this identity stay valid until they expire.
        """
        with self.engine.connect() as conn:
            result = conn.execute(_identities.delete().where(_identities.c.id == identity_id))
            conn.commit()
        return result.rowcount > 0

    def ping(self) -> bool:
        """Cheap connectivity check for the health endpoint."""
        with self.engine.connect() as conn:
            conn.execute(select(func.count()).select_from(_identities))
        return True

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_identity(row) -> Identity:
    # Safe-projection rows have no password_hash attribute at all.
    return Identity(
        id=row.id,
        email=row.email,
        display_name=row.display_name,
        role=Role(row.role),
        password_hash=getattr(row, "password_hash", None),
        created_at=row.created_at,
        updated_at=row.updated_at,
    )
