"""
auth/tokens.py -- Password hashing, bearer token issuance and verification.

Security design decisions:
  JWT: python-jose with HS256. Tokens are signed with SECRET_KEY and carry
       account_id, username (sub), role, a random jti and the expiry. The jti
       is recorded in the access_tokens table at issue time, which is what
       makes logout possible: a revoked or purged jti is rejected even though
       the signature still verifies.

  Lifetime: chosen per login. The default is Settings.token_expire_seconds;
       remember_me=True selects Settings.remember_me_expire_seconds.

  Passwords: bcrypt used directly (no passlib wrapper -- passlib's wrap-bug
       probe trips bcrypt 4.x). The _DUMMY_HASH constant enables timing
       equalization in authenticate() so response time does not reveal
       whether a login identifier exists [C1].

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is
the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import secrets
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

import bcrypt
from jose import JWTError, jwt

from auth.models import AccessToken
from core.config import get_settings
from core.errors import InvalidCredentials
from core.identifiers import resolve_login

if TYPE_CHECKING:
    from auth.models import Account
    from auth.store import AccountStore

logger = logging.getLogger("accountkit.auth")

# ---------------------------------------------------------------------------
# Config -- read once at module load via the lru_cache singleton [M6]
# ---------------------------------------------------------------------------

_settings = get_settings()

_ALGORITHM = "HS256"
TOKEN_NAME = "auth_token"

# ---------------------------------------------------------------------------
# Password hashing
# ---------------------------------------------------------------------------


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt refuses input longer than 72 bytes. The API models reject such
    passwords (UTF-8 length, not character count) before they get here.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash or over-long input
        return False


# Timing equalization dummy hash [C1].
# Computed once at module load so the first login attempt is not measurably
# slower than subsequent ones.
_DUMMY_HASH: str = hash_password("accountkit_timing_dummy")


# ---------------------------------------------------------------------------
# Token issuance
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IssuedToken:
    """A freshly issued bearer token and its expiry."""

    token: str
    expires_at: datetime
    expires_in: int  # seconds


def token_lifetime(remember_me: bool = False) -> int:
    """Return the token lifetime in seconds for the requested session policy."""
    if remember_me:
        return _settings.remember_me_expire_seconds
    return _settings.token_expire_seconds


def create_access_token(store: AccountStore, account: Account, remember_me: bool = False) -> IssuedToken:
    """Sign a JWT for account and record its jti so it can later be revoked.

    Args:
        store:       Where the token record is written.
        account:     The authenticated account (must have an id).
        remember_me: Selects the extended lifetime instead of the default.
    """
    duration = token_lifetime(remember_me)
    now = datetime.now(timezone.utc)
    expire = now + timedelta(seconds=duration)
    jti = secrets.token_urlsafe(32)

    store.create_token(
        AccessToken(
            account_id=account.id,
            jti=jti,
            name=TOKEN_NAME,
            expires_at=expire.isoformat(),
        )
    )

    payload = {
        "sub": account.username,
        "account_id": account.id,
        "role": account.role,
        "jti": jti,
        "iat": now,
        "exp": expire,
    }
    token = jwt.encode(payload, _settings.secret_key, algorithm=_ALGORITHM)
    return IssuedToken(token=token, expires_at=expire, expires_in=duration)


def decode_access_token(token: str) -> dict | None:
    """Decode and verify a JWT. Returns the payload dict or None on any failure.

    Signature and exp are checked here; revocation is checked by
    resolve_access_token() against the store.
    """
    try:
        payload = jwt.decode(token, _settings.secret_key, algorithms=[_ALGORITHM])
    except JWTError:
        return None
    if "account_id" not in payload or "jti" not in payload:
        return None
    return payload


def resolve_access_token(store: AccountStore, token: str) -> tuple[Account, AccessToken] | None:
    """Return (account, token record) for a usable bearer token, else None.

    A token is usable when its signature and exp verify, its jti is on record,
    not revoked, not past its stored expiry, issued to the same account, and
    that account still exists and is active.
    """
    payload = decode_access_token(token)
    if payload is None:
        return None

    record = store.get_token(payload["jti"])
    if record is None or record.revoked or record.account_id != payload["account_id"]:
        return None
    if datetime.fromisoformat(record.expires_at) <= datetime.now(timezone.utc):
        return None

    account = store.get_by_id(record.account_id)
    if account is None or not account.is_active:
        return None

    store.touch_token(record.id)
    return account, record


def revoke_access_token(store: AccountStore, record: AccessToken) -> None:
    """Revoke a single token (logout)."""
    if store.revoke_token(record.jti):
        logger.info("Revoked token %d for account %d", record.id, record.account_id)


# ---------------------------------------------------------------------------
# Login (constant-time) [C1]
# ---------------------------------------------------------------------------


def authenticate(store: AccountStore, login: str, password: str) -> Account:
    """Resolve login to an account and check the password.

    login may be an email, phone number or username (see
    core.identifiers.resolve_login). Always runs bcrypt whether or not the
    account exists:
    - Unknown login: bcrypt runs against _DUMMY_HASH (same cost as real check)
    - Wrong password: bcrypt runs against the real hash (same cost)

    Raises InvalidCredentials -- with one message for every failure reason --
    when the login is unknown, the password is wrong or the account is inactive.
    """
    identifier = resolve_login(login)
    account = store.get_by_field(identifier.field, identifier.value)
    if account is None:
        # Equalize timing -- do NOT return early before running bcrypt [C1]
        verify_password(password, _DUMMY_HASH)
        logger.info("Failed login: no account for %s lookup", identifier.field)
        raise InvalidCredentials()
    if not verify_password(password, account.hashed_password):
        logger.info("Failed login: wrong password for account %d", account.id)
        raise InvalidCredentials()
    if not account.is_active:
        logger.info("Failed login: account %d is inactive", account.id)
        raise InvalidCredentials()
    return account
