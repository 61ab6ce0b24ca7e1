"""
api/routes/v1/users.py -- Account CRUD routes.

Routes:
  GET       /users                          -- list accounts
  GET       /users/{user_id}                -- one account
  PUT/PATCH /users/{user_id}                -- partial update (owner or admin)
  POST      /users/{user_id}/profile-picture -- replace the picture (owner or admin)
  DELETE    /users/{user_id}                -- delete account (owner or admin)

Updates run the same uniqueness check as registration, scoped so the target
account never conflicts with itself. Only admins may change a role.
"""

from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, File, Request, UploadFile

from api.models import AccountResponse, AccountUpdate, MessageResponse
from api.uploads import save_profile_picture
from auth.dependencies import get_current_account, get_current_token
from auth.models import AccessToken, Account
from auth.store import AccountStore
from auth.tokens import hash_password
from core.config import Settings, get_settings
from core.errors import Conflict, Forbidden, NotFound, ValidationFailed
from core.media import delete_media
from core.phone import normalize_phone

logger = logging.getLogger("accountkit.api.users")

# Every route on this router requires a valid bearer token.
router = APIRouter(dependencies=[Depends(get_current_account)])


def _get_or_404(store: AccountStore, user_id: int) -> Account:
    account = store.get_by_id(user_id)
    if account is None:
        raise NotFound("User not found.")
    return account


def _require_owner_or_admin(current: Account, target: Account) -> None:
    if current.id != target.id and current.role != "admin":
        raise Forbidden("You can only modify your own account.")


@router.get("/users", response_model=list[AccountResponse])
async def list_users(request: Request) -> list[AccountResponse]:
    store: AccountStore = request.app.state.account_store
    return [AccountResponse.from_account(a) for a in store.list_accounts()]


@router.get("/users/{user_id}", response_model=AccountResponse)
async def show_user(request: Request, user_id: int) -> AccountResponse:
    store: AccountStore = request.app.state.account_store
    return AccountResponse.from_account(_get_or_404(store, user_id))


@router.api_route("/users/{user_id}", methods=["PUT", "PATCH"], response_model=AccountResponse)
async def update_user(
    request: Request,
    user_id: int,
    body: AccountUpdate,
    current_account: Account = Depends(get_current_account),
    current_token: AccessToken = Depends(get_current_token),
) -> AccountResponse:
    """Apply the fields present in the body.

    A new phone number is normalized with the body's country_code as region
    hint; "phone_number": null clears it. country_code without phone_number is
    rejected. Changing the password revokes every other session of the
    account.
    """
    store: AccountStore = request.app.state.account_store
    target = _get_or_404(store, user_id)
    _require_owner_or_admin(current_account, target)

    sent = body.model_fields_set
    if "role" in sent and body.role.value != target.role and current_account.role != "admin":
        raise Forbidden("Only admins can change roles.")

    updates: dict = {}
    for name in ("username", "full_name", "email", "is_active"):
        if name in sent:
            updates[name] = getattr(body, name)
    if "role" in sent:
        updates["role"] = body.role.value
    if "date_of_birth" in sent:
        updates["date_of_birth"] = body.date_of_birth.isoformat() if body.date_of_birth else None
    if "password" in sent and body.password is not None:
        updates["hashed_password"] = hash_password(body.password)
    if "phone_number" in sent:
        updates["phone_number"] = normalize_phone(body.phone_number, body.country_code) if body.phone_number else None
    elif "country_code" in sent:
        raise ValidationFailed("country_code is only accepted together with phone_number.")

    if not updates:
        raise ValidationFailed("No fields to update.")

    conflicts = store.find_conflicts(
        email=updates.get("email"),
        username=updates.get("username"),
        phone_number=updates.get("phone_number"),
        exclude_id=target.id,
    )
    if conflicts:
        logger.info("Update conflict for account %d on %s", target.id, ", ".join(conflicts))
        raise Conflict(conflicts)

    store.update_account(target.id, **updates)

    if "hashed_password" in updates:
        keep = current_token.jti if current_account.id == target.id else None
        revoked = store.revoke_account_tokens(target.id, keep_jti=keep)
        logger.info("Password changed for account %d; revoked %d other token(s)", target.id, revoked)

    return AccountResponse.from_account(_get_or_404(store, target.id))


@router.post("/users/{user_id}/profile-picture", response_model=AccountResponse)
async def upload_profile_picture(
    request: Request,
    user_id: int,
    profile_picture: UploadFile = File(...),
    current_account: Account = Depends(get_current_account),
    settings: Settings = Depends(get_settings),
) -> AccountResponse:
    """Replace the account's profile picture. The previous file is deleted."""
    store: AccountStore = request.app.state.account_store
    target = _get_or_404(store, user_id)
    _require_owner_or_admin(current_account, target)

    path = await save_profile_picture(profile_picture, settings)
    store.update_account(target.id, profile_picture=path)
    delete_media(target.profile_picture, settings.media_root)

    return AccountResponse.from_account(_get_or_404(store, target.id))


@router.delete("/users/{user_id}", response_model=MessageResponse)
async def delete_user(
    request: Request,
    user_id: int,
    current_account: Account = Depends(get_current_account),
    settings: Settings = Depends(get_settings),
) -> MessageResponse:
    """Delete the account, its tokens and its stored picture."""
    store: AccountStore = request.app.state.account_store
    target = _get_or_404(store, user_id)
    _require_owner_or_admin(current_account, target)

    store.delete_account(target.id)
    delete_media(target.profile_picture, settings.media_root)
    logger.info("Account %d deleted by account %d", target.id, current_account.id)
    return MessageResponse(message="User deleted.")
