"""Account and API key management endpoints (session-authenticated)."""

from __future__ import annotations

import logging

from fastapi import APIRouter, Request

from walletpilot.auth.identity import Account
from walletpilot.auth.key_store import get_key_store
from walletpilot.auth.sessions import require_account, require_identity
from walletpilot.db.database import get_db
from walletpilot.db.queries import profiles as profile_queries
from walletpilot.errors import IdentityError, NotFoundOrForbidden, Unauthenticated
from walletpilot.models.api_key import ApiKeyCreate, ApiKeyCreated
from walletpilot.models.common import ok
from walletpilot.models.user import LoginRequest, Profile, SignupRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/auth", tags=["auth"])

DEFAULT_KEY_NAME = "Default Key"
KEY_NOT_FOUND = "API key not found"


async def _ensure_profile(account: Account) -> Profile:
    """Load the profile row, creating a free-plan one on first sight of the account."""
    db = await get_db()
    row = await profile_queries.get_profile(db, account.id)
    if row is None:
        await profile_queries.upsert_profile(db, account.id, account.email)
        row = await profile_queries.get_profile(db, account.id)
    return Profile(**{k: row[k] for k in Profile.model_fields if k in row})


@router.post("/signup")
async def signup(body: SignupRequest):
    provider = require_identity()
    try:
        account = await provider.create_user(body.email, body.password)
    except IdentityError as e:
        raise IdentityError(e.message, status_code=400)

    db = await get_db()
    await profile_queries.upsert_profile(db, account.id, account.email, body.name, body.company)
    logger.info("Account created: %s", account.id)

    store = await get_key_store()
    raw_key, _ = await store.create(account.id, DEFAULT_KEY_NAME)

    return ok({
        "user": {"id": account.id, "email": account.email},
        "apiKey": raw_key,
        "message": "Account created. Save your API key - it won't be shown again.",
    })


@router.post("/login")
async def login(body: LoginRequest):
    provider = require_identity()
    try:
        session = await provider.sign_in(body.email, body.password)
    except IdentityError:
        raise Unauthenticated("Invalid email or password")

    account = session.account
    return ok({
        "accessToken": session.access_token,
        "refreshToken": session.refresh_token,
        "expiresAt": session.expires_at,
        "user": {"id": account.id, "email": account.email} if account else None,
    })


@router.post("/refresh")
async def refresh(request: Request):
    provider = require_identity()
    refresh_token = request.headers.get("x-refresh-token")
    if not refresh_token:
        raise Unauthenticated("Missing refresh token")
    try:
        session = await provider.refresh(refresh_token)
    except IdentityError:
        raise Unauthenticated("Invalid refresh token")

    return ok({
        "accessToken": session.access_token,
        "refreshToken": session.refresh_token,
        "expiresAt": session.expires_at,
    })


@router.get("/me")
async def me(request: Request):
    account = await require_account(request)
    profile = await _ensure_profile(account)
    store = await get_key_store()
    keys = await store.list(account.id)
    return ok({
        "user": profile.to_public(),
        "apiKeys": [k.to_public() for k in keys],
    })


@router.get("/keys")
async def list_api_keys(request: Request):
    account = await require_account(request)
    store = await get_key_store()
    keys = await store.list(account.id)
    return ok([k.to_public() for k in keys])


@router.post("/keys")
async def create_api_key(body: ApiKeyCreate, request: Request):
    account = await require_account(request)
    await _ensure_profile(account)
    store = await get_key_store()
    raw_key, record = await store.create(account.id, body.name)
    created = ApiKeyCreated(id=record.id, name=record.name, key=raw_key, prefix=record.prefix)
    return ok(created.model_dump())


@router.post("/keys/{key_id}/revoke")
async def revoke_api_key(key_id: str, request: Request):
    account = await require_account(request)
    store = await get_key_store()
    if not await store.revoke(key_id, account.id):
        raise NotFoundOrForbidden(KEY_NOT_FOUND)
    return ok()


@router.delete("/keys/{key_id}")
async def delete_api_key(key_id: str, request: Request):
    account = await require_account(request)
    store = await get_key_store()
    if not await store.delete(key_id, account.id):
        raise NotFoundOrForbidden(KEY_NOT_FOUND)
    return ok()
