"""
auth/tokens.py -- Session token codec.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       the account id (sub), email, role, iat and exp. Nothing else -- in
       particular no permissions, which are always re-read from the store.

  Lifetime: fixed at Settings.token_expire_seconds (24h) from issuance.
       Tokens are stateless; there is no server-side revocation list, so
       expiry (or rotating SECRET_KEY) is the only way a token stops working.

  Failure modes: verify_token() raises ExpiredToken for a well-signed token
       past its exp, and InvalidToken for everything else (bad signature,
       garbage input, missing claims). Callers answer differently: expired
       means "log in again", invalid means "go away".

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

from datetime import datetime, timedelta, timezone

from jose import ExpiredSignatureError, JWTError, jwt

from auth.errors import ExpiredToken, InvalidToken
from auth.models import TokenClaims
from core.config import get_settings

_settings = get_settings()

_ALGORITHM = "HS256"
_BEARER_PREFIX = "Bearer "
_REQUIRED_CLAIMS = ("sub", "email", "role", "iat", "exp")


def issue_token(
    account_id: str,
    email: str,
    role: str,
    *,
    now: datetime | None = None,
    secret: str | None = None,
) -> str:
    """Encode a signed session token for the given identity.

    Args:
        account_id: Account primary key, stored as the JWT subject.
        email:      Normalized account email.
        role:       "admin" or "super_admin".
        now:        Issue time override (tests). Defaults to current UTC time.
        secret:     Signing key override (tests). Defaults to SECRET_KEY.
    """
    issued = now or datetime.now(timezone.utc)
    expires = issued + timedelta(seconds=_settings.token_expire_seconds)
    payload = {
        "sub": account_id,
        "email": email,
        "role": role,
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(payload, secret or _settings.secret_key, algorithm=_ALGORITHM)


def verify_token(token: str, *, secret: str | None = None) -> TokenClaims:
    """Verify a session token and return its claims.

    Raises:
        ExpiredToken: signature is valid but exp has passed.
        InvalidToken: signature mismatch, malformed token, or missing claims.
    """
    try:
        payload = jwt.decode(token, secret or _settings.secret_key, algorithms=[_ALGORITHM])
    except ExpiredSignatureError as exc:
        raise ExpiredToken() from exc
    except JWTError as exc:
        raise InvalidToken() from exc

    if any(claim not in payload for claim in _REQUIRED_CLAIMS):
        raise InvalidToken()
    try:
        return TokenClaims(
            account_id=str(payload["sub"]),
            email=str(payload["email"]),
            role=str(payload["role"]),
            issued_at=datetime.fromtimestamp(int(payload["iat"]), tz=timezone.utc),
            expires_at=datetime.fromtimestamp(int(payload["exp"]), tz=timezone.utc),
        )
    except (TypeError, ValueError) as exc:
        raise InvalidToken() from exc


def extract_bearer_token(header_value: str | None) -> str | None:
    """Return the token from an ``Authorization: Bearer <token>`` header value.

    Any other scheme, a missing header, or an empty token yields None. None is
    not an error -- it tells the caller the request is anonymous.
    """
    if not header_value or not header_value.startswith(_BEARER_PREFIX):
        return None
    token = header_value[len(_BEARER_PREFIX) :].strip()
    return token or None
