"""
auth/store.py -- SQLAlchemy Core persistence layer for accounts and tokens.

Pattern: Repository + Data Mapper. AccountStore is the repository;
_row_to_account / _row_to_token are the mappers. Route and dependency code
never touches SQL directly.

Security:
  All queries use bound parameters. No f-strings in SQL. Column names used in
  dynamic lookups (get_by_field) come from a fixed whitelist.

Uniqueness:
  username, email and phone_number carry UNIQUE constraints, so the database
  has the final word. find_conflicts() runs the same comparison up front so
  the API can name every clashing field at once instead of surfacing the
  first IntegrityError. SQLite treats NULLs as distinct in UNIQUE columns,
  which is exactly what an optional phone number needs.

Timestamps are ISO 8601 UTC strings, so ordering and expiry comparisons in
SQL work lexicographically.
"""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import Column, ForeignKey, Integer, MetaData, String, Table, Text, create_engine, event, or_, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import IntegrityError

from auth.models import AccessToken, Account
from core.config import get_settings
from core.errors import Conflict

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_metadata = MetaData()

_users = Table(
    "users",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("username", String(255), nullable=False, unique=True),
    Column("full_name", String(255), nullable=False),
    Column("email", String(255), nullable=False, unique=True),
    Column("hashed_password", Text, nullable=False),
    Column("date_of_birth", String(10)),
    Column("profile_picture", String(255)),
    Column("is_active", Integer, nullable=False, server_default="1"),
    Column("role", String(10), nullable=False, server_default="user"),
    Column("phone_number", String(20), unique=True),  # E.164, NULL when not supplied
    Column("last_login_at", String(32)),
    Column("created_at", String(32), nullable=False),
    Column("updated_at", String(32), nullable=False),
)

_access_tokens = Table(
    "access_tokens",
    _metadata,
    Column("id", Integer, primary_key=True, autoincrement=True),
    Column("account_id", Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True),
    Column("name", String(100), nullable=False),
    Column("jti", String(64), nullable=False, unique=True),
    Column("created_at", String(32), nullable=False),
    Column("expires_at", String(32), nullable=False),
    Column("last_used_at", String(32)),
    Column("revoked", Integer, nullable=False, server_default="0"),
)

# Fields a login identifier may resolve to; get_by_field() rejects others.
_LOOKUP_FIELDS = ("email", "username", "phone_number")

# Columns update_account() may write. id and created_at are immutable.
_UPDATABLE_FIELDS = {
    "username",
    "full_name",
    "email",
    "hashed_password",
    "date_of_birth",
    "profile_picture",
    "is_active",
    "role",
    "phone_number",
    "last_login_at",
}


# ---------------------------------------------------------------------------
# SQLite pragmas
# ---------------------------------------------------------------------------


def _set_sqlite_pragmas(dbapi_conn, connection_record) -> None:
    """Enable WAL journal mode and foreign key enforcement.

    Set per-connection because SQLite PRAGMAs are not inherited by new
    connections from the pool. foreign_keys=ON makes deleting an account
    cascade to its access tokens.
    """
    dbapi_conn.execute("PRAGMA journal_mode=WAL")
    dbapi_conn.execute("PRAGMA foreign_keys=ON")


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _now_iso() -> str:
    return datetime.now(timezone.utc).isoformat()


# ---------------------------------------------------------------------------
# Repository
# ---------------------------------------------------------------------------


class AccountStore:
    """Repository for Account and AccessToken entities.

    Usage:
        store = AccountStore()
        account_id = store.create_account(Account(username="ana", ...))
        account = store.get_by_field("email", "ana@example.com")
        store.close()
    """

    def __init__(self, db_url: Optional[str] = None) -> None:
        db_url = db_url or get_settings().database_url
        connect_args: dict = {}
        if db_url.startswith("sqlite"):
            connect_args["check_same_thread"] = False
        self.engine: Engine = create_engine(db_url, connect_args=connect_args)
        if db_url.startswith("sqlite"):
            event.listen(self.engine, "connect", _set_sqlite_pragmas)
        _metadata.create_all(self.engine)

    def ping(self) -> bool:
        """Return True if the database answers a trivial query."""
        try:
            with self.engine.connect() as conn:
                conn.execute(text("SELECT 1"))
        except Exception:
            return False
        return True

    # ------------------------------------------------------------------
    # Account queries
    # ------------------------------------------------------------------

    def create_account(self, account: Account) -> int:
        """Insert a new account and return its assigned database ID.

        Raises Conflict if a unique column clashes. Callers run find_conflicts()
        first; the IntegrityError behind this only fires when a concurrent
        request wins the race between the check and the insert.
        """
        now = _now_iso()
        with self.engine.connect() as conn:
            try:
                result = conn.execute(
                    _users.insert().values(
                        username=account.username,
                        full_name=account.full_name,
                        email=account.email,
                        hashed_password=account.hashed_password,
                        date_of_birth=account.date_of_birth,
                        profile_picture=account.profile_picture,
                        is_active=1 if account.is_active else 0,
                        role=account.role,
                        phone_number=account.phone_number,
                        last_login_at=account.last_login_at,
                        created_at=now,
                        updated_at=now,
                    )
                )
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                self._raise_conflict(exc, account.email, account.username, account.phone_number)
            return result.inserted_primary_key[0]

    def get_by_id(self, account_id: int) -> Account | None:
        """Look up an account by primary key. Returns None if not found."""
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c.id == account_id)).fetchone()
        return _row_to_account(row) if row is not None else None

    def get_by_field(self, field: str, value: str) -> Account | None:
        """Exact-match lookup on email, username or phone_number."""
        if field not in _LOOKUP_FIELDS:
            raise ValueError(f"Unsupported lookup field: {field!r}")
        with self.engine.connect() as conn:
            row = conn.execute(_users.select().where(_users.c[field] == value)).fetchone()
        return _row_to_account(row) if row is not None else None

    def find_conflicts(
        self,
        email: Optional[str] = None,
        username: Optional[str] = None,
        phone_number: Optional[str] = None,
        exclude_id: Optional[int] = None,
    ) -> list[str]:
        """Return every unique field whose value already belongs to another account.

        Fields passed as None are not checked. exclude_id skips the account
        being updated so it does not conflict with itself. The result is in
        the fixed order email, username, phone_number.
        """
        wanted = {"email": email, "username": username, "phone_number": phone_number}
        clauses = [_users.c[f] == v for f, v in wanted.items() if v is not None]
        if not clauses:
            return []

        query = _users.select().where(or_(*clauses))
        if exclude_id is not None:
            query = query.where(_users.c.id != exclude_id)

        with self.engine.connect() as conn:
            rows = conn.execute(query).fetchall()

        return [f for f, v in wanted.items() if v is not None and any(getattr(r, f) == v for r in rows)]

    def _raise_conflict(self, exc: IntegrityError, email, username, phone_number, exclude_id=None) -> None:
        """Translate a UNIQUE violation into Conflict, naming the clashing fields.

        Re-raises the original IntegrityError when no unique field clashes
        (some other constraint failed).
        """
        fields = self.find_conflicts(email, username, phone_number, exclude_id=exclude_id)
        if not fields:
            raise exc
        raise Conflict(fields) from exc

    def list_accounts(self) -> list[Account]:
        """Return all accounts ordered by id."""
        with self.engine.connect() as conn:
            rows = conn.execute(_users.select().order_by(_users.c.id)).fetchall()
        return [_row_to_account(r) for r in rows]

    def update_account(self, account_id: int, **fields) -> bool:
        """Update mutable fields on an existing account and bump updated_at.

        is_active must be passed as bool; this method converts to int for SQLite.
        Unknown field names raise ValueError rather than being silently dropped.

        Returns True if a row was updated, False if account_id was not found.
        Raises Conflict on a unique column clash.
        """
        unknown = set(fields) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown account fields: {sorted(unknown)!r}")
        if "is_active" in fields:
            fields["is_active"] = 1 if fields["is_active"] else 0
        fields["updated_at"] = _now_iso()
        with self.engine.connect() as conn:
            try:
                result = conn.execute(_users.update().where(_users.c.id == account_id).values(**fields))
                conn.commit()
            except IntegrityError as exc:
                conn.rollback()
                self._raise_conflict(
                    exc,
                    fields.get("email"),
                    fields.get("username"),
                    fields.get("phone_number"),
                    exclude_id=account_id,
                )
        return result.rowcount > 0

    def update_last_login(self, account_id: int) -> None:
        """Stamp the current UTC timestamp as last_login_at.

        updated_at is deliberately left alone -- logging in is not a profile edit.
        """
        with self.engine.connect() as conn:
            conn.execute(_users.update().where(_users.c.id == account_id).values(last_login_at=_now_iso()))
            conn.commit()

    def delete_account(self, account_id: int) -> bool:
        """Permanently delete an account and its tokens. Returns False if not found."""
        with self.engine.connect() as conn:
            conn.execute(_access_tokens.delete().where(_access_tokens.c.account_id == account_id))
            result = conn.execute(_users.delete().where(_users.c.id == account_id))
            conn.commit()
        return result.rowcount > 0

    # ------------------------------------------------------------------
    # Access token queries
    # ------------------------------------------------------------------

    def create_token(self, token: AccessToken) -> int:
        """Record an issued token and return its ID."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _access_tokens.insert().values(
                    account_id=token.account_id,
                    name=token.name,
                    jti=token.jti,
                    created_at=_now_iso(),
                    expires_at=token.expires_at,
                    revoked=0,
                )
            )
            conn.commit()
            return result.inserted_primary_key[0]

    def get_token(self, jti: str) -> AccessToken | None:
        """Look up a token record by its jti. O(1) via UNIQUE index."""
        with self.engine.connect() as conn:
            row = conn.execute(_access_tokens.select().where(_access_tokens.c.jti == jti)).fetchone()
        return _row_to_token(row) if row is not None else None

    def touch_token(self, token_id: int) -> None:
        """Stamp last_used_at after a successful bearer authentication."""
        with self.engine.connect() as conn:
            conn.execute(_access_tokens.update().where(_access_tokens.c.id == token_id).values(last_used_at=_now_iso()))
            conn.commit()

    def revoke_token(self, jti: str) -> bool:
        """Mark a token revoked. Returns True if an active token was revoked."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _access_tokens.update()
                .where((_access_tokens.c.jti == jti) & (_access_tokens.c.revoked == 0))
                .values(revoked=1)
            )
            conn.commit()
        return result.rowcount > 0

    def revoke_account_tokens(self, account_id: int, keep_jti: Optional[str] = None) -> int:
        """Revoke every active token of an account. Returns the number revoked.

        Used when a password changes so other sessions stop working
        immediately. keep_jti spares the token of the request making the change.
        """
        query = _access_tokens.update().where(
            (_access_tokens.c.account_id == account_id) & (_access_tokens.c.revoked == 0)
        )
        if keep_jti is not None:
            query = query.where(_access_tokens.c.jti != keep_jti)
        with self.engine.connect() as conn:
            result = conn.execute(query.values(revoked=1))
            conn.commit()
        return result.rowcount

    def purge_expired_tokens(self) -> int:
        """Delete token rows that are expired or revoked. Returns rows deleted."""
        with self.engine.connect() as conn:
            result = conn.execute(
                _access_tokens.delete().where(
                    (_access_tokens.c.expires_at <= _now_iso()) | (_access_tokens.c.revoked == 1)
                )
            )
            conn.commit()
        return result.rowcount

    def close(self) -> None:
        self.engine.dispose()


# ---------------------------------------------------------------------------
# Row mappers (Data Mapper pattern)
# ---------------------------------------------------------------------------


def _row_to_account(row) -> Account:
    return Account(
        id=row.id,
        username=row.username,
        full_name=row.full_name,
        email=row.email,
        hashed_password=row.hashed_password,
        date_of_birth=row.date_of_birth,
        profile_picture=row.profile_picture,
        is_active=bool(row.is_active),
        role=row.role,
        phone_number=row.phone_number,
        last_login_at=row.last_login_at,
        created_at=row.created_at,
        updated_at=row.updated_at,
    )


def _row_to_token(row) -> AccessToken:
    return AccessToken(
        id=row.id,
        account_id=row.account_id,
        name=row.name,
        jti=row.jti,
        created_at=row.created_at,
        expires_at=row.expires_at,
        last_used_at=row.last_used_at,
        revoked=bool(row.revoked),
    )
