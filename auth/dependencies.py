"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

Requests authenticate with an Authorization: Bearer <token> header carrying a
token issued by /auth/register or /auth/login. Verification goes through
auth.tokens.resolve_access_token(), so revoked (logged-out) tokens fail here.

get_current_account() raises HTTP 401 if unauthenticated.
get_current_token() returns the token record itself (needed by logout).

Layer rule: auth/dependencies.py may import from fastapi (for Request and
HTTPException) because it is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.models import AccessToken, Account
from auth.tokens import resolve_access_token


def _bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def _authenticate(request: Request) -> tuple[Account, AccessToken] | None:
    # Cache on request.state so get_current_account and get_current_token in
    # the same request resolve (and touch) the token only once.
    if hasattr(request.state, "auth"):
        return request.state.auth
    token = _bearer_token(request)
    result = resolve_access_token(request.app.state.account_store, token) if token else None
    request.state.auth = result
    return result


def _unauthorized() -> HTTPException:
    return HTTPException(
        status_code=401,
        detail={"code": "unauthorized", "message": "Authentication required."},
        headers={"WWW-Authenticate": "Bearer"},
    )


def get_current_account(request: Request) -> Account:
    """Require authentication. Raises HTTP 401 if the request is not authenticated.

    Use as a FastAPI dependency:
        @router.get("/protected")
        async def route(account: Account = Depends(get_current_account)): ...
    """
    result = _authenticate(request)
    if result is None:
        raise _unauthorized()
    return result[0]


def get_current_token(request: Request) -> AccessToken:
    """Require authentication and return the presented token's record."""
    result = _authenticate(request)
    if result is None:
        raise _unauthorized()
    return result[1]

