"""
auth/passwords.py -- Password hashing, strength policy, and one-time secrets.

Security design decisions:
  Passwords: bcrypt directly (no passlib wrapper). Cost factor comes from
       Settings.bcrypt_rounds (12 in production -- a few hundred ms per hash
       on commodity hardware, tens of ms on server CPUs). checkpw compares in
       constant time.

  Timing equalization: DUMMY_HASH is computed once at module load. Login
       verifies against it when the email is unknown so response time does
       not reveal whether an account exists.

  Verification codes: 6 digits from secrets.randbelow -- uniform over
       000000..999999. Collisions with other outstanding codes are not
       checked; codes are always looked up together with the email.

  Reset tokens: secrets.token_hex(32) -- 256 bits of entropy, 64 hex chars.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import re
import secrets
from dataclasses import dataclass

import bcrypt

from core.config import get_settings

_settings = get_settings()

SPECIAL_CHARACTERS = '!@#$%^&*(),.?":{}|<>'

# bcrypt input limit. bcrypt>=5 raises on longer input instead of truncating.
MAX_PASSWORD_BYTES = 72

# Ordered: the first failing rule's message is returned.
_STRENGTH_RULES: tuple[tuple[re.Pattern, str], ...] = (
    (re.compile(r"^.{8,}$", re.DOTALL), "Password must be at least 8 characters long"),
    (re.compile(r"[A-Z]"), "Password must contain at least one uppercase letter"),
    (re.compile(r"[a-z]"), "Password must contain at least one lowercase letter"),
    (re.compile(r"[0-9]"), "Password must contain at least one number"),
    (re.compile("[" + re.escape(SPECIAL_CHARACTERS) + "]"), "Password must contain at least one special character"),
)


@dataclass(frozen=True)
class StrengthResult:
    valid: bool
    reason: str | None = None


# ---------------------------------------------------------------------------
# Hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a salted bcrypt hash of the given plaintext password.

    The input must be at most MAX_PASSWORD_BYTES in UTF-8. Callers run
    validate_password_strength() first, which rejects anything longer.
    """
    salt = bcrypt.gensalt(rounds=_settings.bcrypt_rounds)
    return bcrypt.hashpw(plain.encode("utf-8"), salt).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed or non-bcrypt hash
        return False


DUMMY_HASH: str = hash_password("marketing_admin_timing_dummy")


# ---------------------------------------------------------------------------
# Policy
# ---------------------------------------------------------------------------


def validate_password_strength(plain: str) -> StrengthResult:
    """Check a candidate password against the strength rules, in order.

    Rules: at least 8 characters, at most MAX_PASSWORD_BYTES bytes of UTF-8,
    one uppercase letter, one lowercase letter, one digit, one character from
    SPECIAL_CHARACTERS.
    """
    if len(plain.encode("utf-8")) > MAX_PASSWORD_BYTES:
        return StrengthResult(valid=False, reason=f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")
    for pattern, reason in _STRENGTH_RULES:
        if not pattern.search(plain):
            return StrengthResult(valid=False, reason=reason)
    return StrengthResult(valid=True)


# ---------------------------------------------------------------------------
# One-time secrets
# ---------------------------------------------------------------------------


def generate_verification_code() -> str:
    """Return a uniformly random 6-digit code, zero-padded."""
    return f"{secrets.randbelow(1_000_000):06d}"


def generate_reset_token() -> str:
    """Return 32 random bytes as 64 lowercase hex characters."""
    return secrets.token_hex(32)
