"""
auth/store.py -- SQLAlchemy Core persistence layer for admin accounts.

Pattern: Repository + Data Mapper.
AccountStore is the repository; _row_to_account is the mapper. Route, gate
and lifecycle code never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL.

  Emails are normalized (strip + lower) on every write and lookup, and the
  email column is UNIQUE, so "Alice@X.com" and "alice@x.com" are one account.

  The super_admin invariant lives here, not in callers: any insert or update
  whose resulting role is super_admin writes the full permission set in the
  same statement. There is no code path that can leave a super_admin with a
  false flag.

Timestamps are stored as ISO 8601 UTC strings and mapped back to aware
datetimes.

Layer rule: no imports from api/. Import from core/ is allowed.
"""

from __future__ import annotations

import uuid
from datetime import datetime, timezone

from sqlalchemy import JSON, Boolean, Column, MetaData, String, Table, create_engine, event, func, select, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError

from auth.models import ROLE_SUPER_ADMIN, Account, Permissions
from core.config import get_settings

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_accounts = Table(
    "admin_users",
    _metadata,
    Column("id", String(36), primary_key=True),
    Column("email", String(255), nullable=False, unique=True),
    Column("password_hash", String(255), nullable=False),
    Column("name", String(100), nullable=False),
    Column("role", String(20), nullable=False, server_default="admin"),
    Column("status", String(20), nullable=False, server_default="pending", index=True),
    Column("permissions", JSON, nullable=False),
    Column("is_email_verified", Boolean, nullable=False, server_default="0"),
    Column("email_verify_code", String(10)),
    Column("email_verify_expires", String(32)),
    Column("password_reset_token", String(100), index=True),
    Column("password_reset_expires", String(32)),
    Column("last_login", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

# Account attribute -> column. Only these may be changed through update_account().
_UPDATABLE = {
    "email": "email",
    "password_hash": "password_hash",
    "name": "name",
    "role": "role",
    "status": "status",
    "permissions": "permissions",
    "email_verified": "is_email_verified",
    "email_verify_code": "email_verify_code",
    "email_verify_expires_at": "email_verify_expires",
    "password_reset_token": "password_reset_token",
    "password_reset_expires_at": "password_reset_expires",
    "last_login_at": "last_login",
}


# ---------------------------------------------------------------------------
# WAL mode
# ---------------------------------------------------------------------------


def _set_wal_mode(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode for concurrent read safety.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def normalize_email(email: str) -> str:
    return email.strip().lower()


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


def _to_iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc).isoformat()


def _from_iso(value: str | None) -> datetime | None:
    if not value:
        return None
    parsed = datetime.fromisoformat(value)
    return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)


def _to_column_value(attr: str, value):
    if attr == "email":
        return normalize_email(value)
    if attr == "permissions":
        return value.to_dict() if isinstance(value, Permissions) else Permissions.from_dict(value).to_dict()
    if attr == "email_verified":
        return bool(value)
    if isinstance(value, datetime) or (attr.endswith("_at") and value is None):
        return _to_iso(value)
    return value


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account entities.

    Usage:
        store = AccountStore("sqlite:///:memory:")
        account_id = store.create_account(Account(email="a@x.com", password_hash=h, name="A"))
        account = store.get_by_email("A@X.com")
        store.close()
    """

    def __init__(self, db_url: str | None = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_wal_mode)
        _metadata.create_all(self.engine)

    # ------------------------------------------------------------------
    # Health
    # ------------------------------------------------------------------

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except SQLAlchemyError:
            return False
        return True

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def has_accounts(self) -> bool:
        with self.engine.connect() as conn:
            result = conn.execute(select(func.count()).select_from(_accounts)).scalar()
        return (result or 0) > 0

    def get_by_id(self, account_id: str) -> Account | None:
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_email(self, email: str) -> Account | None:
        """Look up an account by email, case-insensitively. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.email == normalize_email(email))).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_reset_token(self, token: str) -> Account | None:
        """Look up the account holding an outstanding password reset token."""
        if not token:
            return None
        with self.engine.connect() as conn:
            row = conn.execute(_accounts.select().where(_accounts.c.password_reset_token == token)).fetchone()
        return _row_to_account(row) if row is not None else None

    def list_accounts(self) -> list[Account]:
        """Return all accounts, newest first."""
        with self.engine.connect() as conn:
            rows = conn.execute(_accounts.select().order_by(_accounts.c.created_at.desc())).fetchall()
        return [_row_to_account(r) for r in rows]

    def count_by_status(self) -> dict[str, int]:
        """Return {status: count} for every status present in the table."""
        with self.engine.connect() as conn:
            rows = conn.execute(
                select(_accounts.c.status, func.count()).group_by(_accounts.c.status)
            ).fetchall()
        return {status: count for status, count in rows}

    def count_awaiting_approval(self) -> int:
        """Accounts that verified their email but have not been activated yet."""
        with self.engine.connect() as conn:
            result = conn.execute(
                select(func.count())
                .select_from(_accounts)
                .where((_accounts.c.status == "pending") & (_accounts.c.is_email_verified.is_(True)))
            ).scalar()
        return result or 0

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> str:
        """Insert a new account and return its generated id.

        Raises sqlalchemy.exc.IntegrityError if the email already exists.
        Callers that pre-check for duplicates should still catch it: two
        concurrent registrations can both pass the pre-check.
        """
        account_id = account.id or str(uuid.uuid4())
        permissions = Permissions.all_granted() if account.role == ROLE_SUPER_ADMIN else account.permissions
        now = _now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _accounts.insert().values(
                    id=account_id,
                    email=normalize_email(account.email),
                    password_hash=account.password_hash,
                    name=account.name,
                    role=account.role,
                    status=account.status,
                    permissions=permissions.to_dict(),
                    is_email_verified=account.email_verified,
                    email_verify_code=account.email_verify_code,
                    email_verify_expires=_to_iso(account.email_verify_expires_at),
                    password_reset_token=account.password_reset_token,
                    password_reset_expires=_to_iso(account.password_reset_expires_at),
                    last_login=_to_iso(account.last_login_at),
                    created_at=now,
                    updated_at=now,
                )
            )
        return account_id

    def update_account(self, account_id: str, **fields) -> bool:
        """Update mutable fields on an existing account.

        Accepted fields are the keys of _UPDATABLE (Account attribute names).
        Unknown keys raise ValueError rather than being silently ignored.
        updated_at is always refreshed.

        If the resulting role is super_admin -- either because role is being
        set or because the account already is one -- permissions are forced
        to the full set inside the same transaction.

        Returns True if a row was updated, False if account_id was not found.
        """
        unknown = set(fields) - set(_UPDATABLE)
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)!r}")

        values = {_UPDATABLE[attr]: _to_column_value(attr, value) for attr, value in fields.items()}
        values["updated_at"] = _now_iso()

        with self.engine.begin() as conn:
            if "role" in fields:
                role = fields["role"]
            else:
                role = conn.execute(select(_accounts.c.role).where(_accounts.c.id == account_id)).scalar()
            if role == ROLE_SUPER_ADMIN:
                values["permissions"] = Permissions.all_granted().to_dict()
            result = conn.execute(_accounts.update().where(_accounts.c.id == account_id).values(**values))
        return result.rowcount > 0

    def update_last_login(self, account_id: str, when: datetime | None = None) -> None:
        """Stamp last_login (and updated_at) after a successful login."""
        stamp = _to_iso(when) or _now_iso()
        with self.engine.begin() as conn:
            conn.execute(
                _accounts.update().where(_accounts.c.id == account_id).values(last_login=stamp, updated_at=stamp)
            )

    def delete_account(self, account_id: str) -> bool:
        """Permanently delete an account. Returns True if deleted, False if not found."""
        with self.engine.begin() as conn:
            result = conn.execute(_accounts.delete().where(_accounts.c.id == account_id))
        return result.rowcount > 0

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mapper (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        email=row.email,
        password_hash=row.password_hash,
        name=row.name,
        role=row.role,
        status=row.status,
        permissions=Permissions.from_dict(row.permissions),
        email_verified=bool(row.is_email_verified),
        email_verify_code=row.email_verify_code,
        email_verify_expires_at=_from_iso(row.email_verify_expires),
        password_reset_token=row.password_reset_token,
        password_reset_expires_at=_from_iso(row.password_reset_expires),
        last_login_at=_from_iso(row.last_login),
        created_at=_from_iso(row.created_at),
        updated_at=_from_iso(row.updated_at),
    )
