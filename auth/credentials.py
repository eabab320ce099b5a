"""
auth/credentials.py -- Password hashing and verification (bcrypt).

Bcrypt is the right choice for low-entropy secrets (passwords) because its
cost factor makes brute-force expensive. Every hash() call draws a fresh salt,
so two hashes of the same password never compare equal -- callers must use
verify(), never string equality.

Using bcrypt directly rather than passlib[bcrypt] because passlib's internal
wrap-bug detection creates a password longer than 72 bytes, which bcrypt 4.x
rejects with an explicit error.

Both operations are CPU-bound and slow. They are synchronous;
routes that call them are plain `def` handlers so FastAPI runs them in its
worker thread pool instead of on the event loop.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations

import bcrypt

DEFAULT_ROUNDS = 12
MAX_PASSWORD_BYTES = 72

_DUMMY_PASSWORD = "shopgate_timing_dummy"


class CredentialStore:
    """Owns the password hash primitive and its work factor.

    Usage:
        credentials = CredentialStore(rounds=12)
        hashed = credentials.hash("Strong1!")
        credentials.verify("Strong1!", hashed)   # True
    """

    def __init__(self, rounds: int = DEFAULT_ROUNDS) -> None:
        self.rounds = rounds
        self._dummy_hash: str | None = None

    def hash(self, plaintext: str) -> str:
        """Return a salted bcrypt hash of plaintext.

        bcrypt only accepts 72 bytes of input. Longer passwords are refused
        with ValueError; PasswordPolicy rejects them earlier as too_long.
        """
        if plaintext is None:
            raise TypeError("Cannot hash a missing password.")
        encoded = plaintext.encode("utf-8")
        if len(encoded) > MAX_PASSWORD_BYTES:
            raise ValueError(f"Password exceeds {MAX_PASSWORD_BYTES} bytes; run it through PasswordPolicy first.")
        salt = bcrypt.gensalt(rounds=self.rounds)
        return bcrypt.hashpw(encoded, salt).decode("utf-8")

    def verify(self, plaintext: str, hashed: str) -> bool:
        """Return True if plaintext reproduces hashed. A malformed hash is a mismatch."""
        if plaintext is None:
            raise TypeError("Cannot verify a missing password.")
        if not hashed:
            return False
        try:
            return bcrypt.checkpw(plaintext.encode("utf-8"), hashed.encode("utf-8"))
        except ValueError:
            return False

    def burn(self, plaintext: str) -> None:
        """Spend one verify's worth of work against a dummy hash.

        Called on the unknown-email login path so its response time matches
        the wrong-password path and does not reveal whether an email exists.
        The dummy hash is computed on first use with this store's work factor.
        """
        if self._dummy_hash is None:
            self._dummy_hash = self.hash(_DUMMY_PASSWORD)
        self.verify(plaintext, self._dummy_hash)
