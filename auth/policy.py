"""
auth/policy.py -- Password strength policy and the display name rule.

Six password rules, each checked independently so the caller learns about every
problem at once rather than fixing them one round-trip at a time:

  too_short          fewer than MIN_LENGTH characters
  too_long           more than MAX_BYTES bytes once UTF-8 encoded (bcrypt's limit)
  missing_lowercase  no a-z
  missing_uppercase  no A-Z
  missing_digit      no 0-9
  missing_special    none of SPECIAL_CHARACTERS

normalize_display_name() is the matching rule for display names: surrounding
whitespace is dropped and nothing may be left blank.

validate() is pure and deterministic. enforce_password_policy() is the single
entry point used by every code path that accepts a new password (registration,
identity update, owner provisioning) -- they share this function rather than
a DTO hierarchy.

Layer rule: no imports from api/, core/, or catalog/.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

from auth.errors import InvalidDisplayName, WeakPassword

MIN_LENGTH = 8
MAX_BYTES = 72
SPECIAL_CHARACTERS = "@$!%*?&"

_RULES: tuple[tuple[str, re.Pattern], ...] = (
    ("missing_lowercase", re.compile(r"[a-z]")),
    ("missing_uppercase", re.compile(r"[A-Z]")),
    ("missing_digit", re.compile(r"\d")),
    ("missing_special", re.compile(f"[{re.escape(SPECIAL_CHARACTERS)}]")),
)

VIOLATION_MESSAGES: dict[str, str] = {
    "too_short": f"Password must be at least {MIN_LENGTH} characters long",
    "too_long": f"Password must be at most {MAX_BYTES} bytes long (non-ASCII characters take 2 to 4 bytes each)",
    "missing_lowercase": "Password must contain at least one lowercase letter",
    "missing_uppercase": "Password must contain at least one uppercase letter",
    "missing_digit": "Password must contain at least one number",
    "missing_special": f"Password must contain at least one special character ({SPECIAL_CHARACTERS})",
}


@dataclass(frozen=True)
class PolicyResult:
    valid: bool
    violations: tuple[str, ...] = ()

    @property
    def messages(self) -> list[str]:
        return [VIOLATION_MESSAGES[v] for v in self.violations]


class PasswordPolicy:
    """Fixed rule set. Stateless -- one shared instance is fine."""

    def validate(self, password: str) -> PolicyResult:
        violations: list[str] = []
        if len(password) < MIN_LENGTH:
            violations.append("too_short")
        if len(password.encode("utf-8")) > MAX_BYTES:
            violations.append("too_long")
        for code, pattern in _RULES:
            if not pattern.search(password):
                violations.append(code)
        return PolicyResult(valid=not violations, violations=tuple(violations))


def enforce_password_policy(policy: PasswordPolicy, password: str) -> None:
    """Raise WeakPassword carrying every violated rule, or return None."""
    result = policy.validate(password)
    if not result.valid:
        raise WeakPassword(result.violations)


def normalize_display_name(display_name: str) -> str:
    """Return display_name stripped of surrounding whitespace, or raise InvalidDisplayName if blank."""
    cleaned = (display_name or "").strip()
    if not cleaned:
        raise InvalidDisplayName()
    return cleaned
