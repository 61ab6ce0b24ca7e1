"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Dataclasses own domain
shape; the store and routes do the work.

Layer rule: no imports from api/.
"""

from __future__ import annotations

from dataclasses import dataclass

ROLES = ("user", "admin")


@dataclass
class Account:
    """A registered user.

    email is stored lower-cased so login-by-email matches regardless of the
    casing typed at registration. phone_number is always E.164 or None.
    profile_picture is a path relative to Settings.media_root.
    """

    username: str
    full_name: str
    email: str
    hashed_password: str
    id: int | None = None
    date_of_birth: str | None = None  # ISO 8601 date
    profile_picture: str | None = None
    is_active: bool = True
    role: str = "user"  # "user", "admin"
    phone_number: str | None = None
    last_login_at: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass
class AccessToken:
    """A bearer token issued to an account.

    The JWT itself is never stored; the row is keyed by the token's jti claim.
    revoked=True (logout) or an elapsed expires_at makes the JWT unusable even
    though its signature is still valid.
    """

    account_id: int
    jti: str
    expires_at: str
    name: str = "auth_token"
    id: int | None = None
    created_at: str | None = None
    last_used_at: str | None = None
    revoked: bool = False
