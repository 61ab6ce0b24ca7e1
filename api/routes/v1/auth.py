"""
api/routes/v1/auth.py -- Registration, login and session REST endpoints.

Routes:
  POST /api/v1/auth/register   -- create an account (multipart form); returns account + token
  POST /api/v1/auth/login      -- email / phone / username + password; returns account + token
  POST /api/v1/auth/logout     -- revoke the presented bearer token
  GET  /api/v1/auth/me         -- current account (requires auth)

Security:
  [H2] POST /login is rate-limited per IP (Settings.login_rate_limit).
  [C1] authenticate() provides timing equalization -- use it, never inline.
  [M5] Cache-Control: no-store on every response that carries a token.

Registration order of checks: field validation -> phone normalization ->
uniqueness across email/username/phone -> picture validation -> insert.
"""

from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, Request, UploadFile
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from api.limiter import limiter, login_rate_limit
from api.models import AccountResponse, AuthResponse, LoginRequest, MessageResponse, RegisterRequest
from api.uploads import save_profile_picture
from auth.dependencies import get_current_account, get_current_token
from auth.models import AccessToken, Account
from auth.store import AccountStore
from auth.tokens import IssuedToken, authenticate, create_access_token, hash_password, revoke_access_token
from core.config import Settings, get_settings
from core.errors import Conflict, NotFound
from core.media import delete_media
from core.phone import normalize_phone

logger = logging.getLogger("accountkit.api.auth")

# Auth policy:
# - POST /api/v1/auth/register: public
# - POST /api/v1/auth/login:    public, rate-limited
# - POST /api/v1/auth/logout:   requires auth (get_current_token)
# - GET  /api/v1/auth/me:       requires auth (get_current_account)
router = APIRouter()


def _token_response(account: Account, issued: IssuedToken, status_code: int) -> JSONResponse:
    resp = JSONResponse(
        status_code=status_code,
        content=AuthResponse(
            user=AccountResponse.from_account(account),
            token=issued.token,
            token_type="bearer",  # noqa: S106 # nosec B106 -- OAuth token type, not a password
            expires_in=issued.expires_in,
            expires_at=issued.expires_at.isoformat(),
        ).model_dump(),
    )
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=AuthResponse, status_code=201)
async def register(
    request: Request,
    username: Optional[str] = Form(default=None),
    full_name: Optional[str] = Form(default=None),
    email: Optional[str] = Form(default=None),
    password: Optional[str] = Form(default=None),
    password_confirmation: Optional[str] = Form(default=None),
    date_of_birth: Optional[str] = Form(default=None),
    is_active: Optional[bool] = Form(default=None),
    role: Optional[str] = Form(default=None),
    phone_number: Optional[str] = Form(default=None),
    country_code: Optional[str] = Form(default=None),
    profile_picture: Optional[UploadFile] = File(default=None),
    settings: Settings = Depends(get_settings),
) -> JSONResponse:
    """Create an account and issue its first token.

    Every form field is validated by RegisterRequest so missing and malformed
    fields are reported together in one 422. A phone number is stored in E.164;
    country_code is the default region for numbers without a leading "+".
    Conflicts name every clashing field (409).
    """
    submitted = {
        "username": username,
        "full_name": full_name,
        "email": email,
        "password": password,
        "password_confirmation": password_confirmation,
        "date_of_birth": date_of_birth,
        "is_active": is_active,
        "role": role,
        "phone_number": phone_number,
        "country_code": country_code,
    }
    try:
        body = RegisterRequest(**{k: v for k, v in submitted.items() if v is not None})
    except ValidationError as exc:
        raise RequestValidationError(exc.errors(include_url=False, include_input=False)) from exc

    store: AccountStore = request.app.state.account_store

    phone = normalize_phone(body.phone_number, body.country_code) if body.phone_number else None

    conflicts = store.find_conflicts(email=body.email, username=body.username, phone_number=phone)
    if conflicts:
        logger.info("Registration conflict on %s", ", ".join(conflicts))
        raise Conflict(conflicts)

    picture_path: Optional[str] = None
    if profile_picture is not None and profile_picture.filename:
        picture_path = await save_profile_picture(profile_picture, settings)

    account = Account(
        username=body.username,
        full_name=body.full_name,
        email=body.email,
        hashed_password=hash_password(body.password),
        date_of_birth=body.date_of_birth.isoformat() if body.date_of_birth else None,
        profile_picture=picture_path,
        is_active=body.is_active,
        role=body.role.value,
        phone_number=phone,
    )
    try:
        account_id = store.create_account(account)
    except Conflict:
        delete_media(picture_path, settings.media_root)
        raise

    created = store.get_by_id(account_id)
    if created is None:
        raise NotFound("Account not found after write.")
    logger.info("Registered account %d (%s)", created.id, created.username)

    issued = create_access_token(store, created)
    return _token_response(created, issued, status_code=201)


@router.post("/auth/login", response_model=AuthResponse)
@limiter.limit(login_rate_limit)  # [H2] must be BELOW @router so the registered endpoint is the limited one
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with an email, phone number or username plus password.

    Returns the same 401 body for an unknown login, a wrong password and an
    inactive account. remember_me=true selects the extended token lifetime.
    """
    store: AccountStore = request.app.state.account_store
    account = authenticate(store, body.login, body.password)

    store.update_last_login(account.id)
    refreshed = store.get_by_id(account.id) or account

    issued = create_access_token(store, refreshed, remember_me=body.remember_me)
    logger.info("Login for account %d (remember_me=%s)", refreshed.id, body.remember_me)
    return _token_response(refreshed, issued, status_code=200)


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
async def logout(request: Request, token: AccessToken = Depends(get_current_token)) -> MessageResponse:
    """Revoke the token used for this request. Other sessions stay valid."""
    revoke_access_token(request.app.state.account_store, token)
    return MessageResponse(message="Logged out.")


@router.get("/auth/me", response_model=AccountResponse)
async def me(current_account: Account = Depends(get_current_account)) -> AccountResponse:
    """Return the account that owns the presented token."""
    return AccountResponse.from_account(current_account)
