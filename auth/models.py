"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, near-zero logic). Dataclasses own
domain shape; the store and the lifecycle service do the work.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field, fields
from datetime import datetime

ROLE_ADMIN = "admin"
ROLE_SUPER_ADMIN = "super_admin"
ROLES = (ROLE_ADMIN, ROLE_SUPER_ADMIN)

STATUS_PENDING = "pending"
STATUS_ACTIVE = "active"
STATUS_SUSPENDED = "suspended"
STATUSES = (STATUS_PENDING, STATUS_ACTIVE, STATUS_SUSPENDED)


@dataclass
class Permissions:
    """One boolean per protected content area.

    The set is closed on purpose: a new protected area means a new field here,
    not a new key in somebody's JSON blob. from_dict() drops keys it does not
    know and treats absent keys as False.
    """

    dashboard: bool = False
    projects: bool = False
    services: bool = False
    capabilities: bool = False
    client_fit: bool = False
    process: bool = False
    about: bool = False
    tech_stack: bool = False
    trust_signals: bool = False
    media: bool = False
    inbox: bool = False
    site_config: bool = False
    form_options: bool = False
    users: bool = False

    @classmethod
    def names(cls) -> tuple[str, ...]:
        return tuple(f.name for f in fields(cls))

    @classmethod
    def default(cls) -> Permissions:
        """Permission set for a freshly self-registered account."""
        return cls(dashboard=True)

    @classmethod
    def all_granted(cls) -> Permissions:
        return cls(**{name: True for name in cls.names()})

    @classmethod
    def from_dict(cls, data: dict | None) -> Permissions:
        data = data or {}
        return cls(**{name: bool(data.get(name, False)) for name in cls.names()})

    def to_dict(self) -> dict[str, bool]:
        return asdict(self)

    def has(self, name: str) -> bool:
        """Return the flag for a permission name; unknown names are never granted."""
        if name not in self.names():
            return False
        return getattr(self, name) is True


@dataclass
class Account:
    """An admin panel account.

    email is always stored lower-cased; the store normalizes on every write
    and lookup. The verify-code and reset-token pairs are set and cleared
    together -- a code without an expiry (or the reverse) never reaches the DB.
    """

    email: str
    password_hash: str
    name: str
    role: str = ROLE_ADMIN  # "admin", "super_admin"
    status: str = STATUS_PENDING  # "pending", "active", "suspended"
    permissions: Permissions = field(default_factory=Permissions.default)
    id: str | None = None
    email_verified: bool = False
    email_verify_code: str | None = None
    email_verify_expires_at: datetime | None = None
    password_reset_token: str | None = None
    password_reset_expires_at: datetime | None = None
    last_login_at: datetime | None = None
    created_at: datetime | None = None
    updated_at: datetime | None = None

    @property
    def is_super_admin(self) -> bool:
        return self.role == ROLE_SUPER_ADMIN


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by a verified session token.

    Deliberately excludes permissions -- permission decisions always go back
    to the store so an admin's edits take effect on the very next request.
    """

    account_id: str
    email: str
    role: str
    issued_at: datetime
    expires_at: datetime
