"""Permission request endpoints (API-key authenticated).

A request only produces a wallet deep link and a pending record; granting,
delegation and spend tracking happen in the wallet, not here.
"""

from __future__ import annotations

import json
import re
from datetime import datetime, timedelta, timezone
from urllib.parse import quote

from fastapi import APIRouter, Request

from walletpilot.db.database import get_db
from walletpilot.db.queries import permissions as permission_queries
from walletpilot.errors import NotFoundOrForbidden, ValidationError
from walletpilot.models.common import ok
from walletpilot.models.permission import PermissionRequestCreate

router = APIRouter(prefix="/v1/permissions", tags=["permissions"])

METAMASK_DEEP_LINK = "https://metamask.app.link/wc?payload="
DEFAULT_EXPIRY_DAYS = 30
_EXPIRY_RE = re.compile(r"^(\d+)(h|d|w|m)$")
_UNIT_HOURS = {"h": 1, "d": 24, "w": 24 * 7, "m": 24 * 30}
MAX_EXPIRY_HOURS = 365 * 24


def parse_expiry(expiry: str | None) -> timedelta:
    """Turn ``12h`` / ``30d`` / ``2w`` / ``1m`` into a timedelta; anything else is 30 days.

    Durations longer than a year are rejected with :class:`ValidationError`.
    """
    match = _EXPIRY_RE.match(expiry or "")
    if not match:
        return timedelta(days=DEFAULT_EXPIRY_DAYS)
    amount = match.group(1).lstrip("0") or "0"
    hours = int(amount) * _UNIT_HOURS[match.group(2)] if len(amount) <= 6 else None
    if hours is None or hours > MAX_EXPIRY_HOURS:
        raise ValidationError("permission.expiry: must be at most 365 days")
    return timedelta(hours=hours)


def build_deep_link(permission: dict, expires_at: datetime) -> str:
    payload = {
        "method": "wallet_grantPermissions",
        "params": [{
            "permissions": permission,
            "expiry": int(expires_at.timestamp()),
        }],
    }
    return METAMASK_DEEP_LINK + quote(json.dumps(payload, separators=(",", ":")), safe="")


def _public(record: dict) -> dict:
    return {
        "id": record["id"],
        "permission": record["permission"],
        "chains": record["chains"],
        "callbackUrl": record["callback_url"],
        "deepLink": record["deep_link"],
        "status": record["status"],
        "expiresAt": record["expires_at"],
        "createdAt": record["created_at"],
    }


@router.post("/request")
async def request_permission(body: PermissionRequestCreate, request: Request):
    api_key = request.state.api_key
    permission = body.permission.model_dump()
    expires_at = datetime.now(timezone.utc) + parse_expiry(body.permission.expiry)
    deep_link = build_deep_link(permission, expires_at)

    db = await get_db()
    request_id = await permission_queries.create_request(
        db, api_key.id, permission, body.chains, deep_link,
        expires_at.isoformat(), callback_url=body.callback_url,
    )
    return ok({
        "requestId": request_id,
        "deepLink": deep_link,
        "expiresAt": expires_at.isoformat(),
    })


@router.get("")
async def list_permissions(request: Request):
    db = await get_db()
    records = await permission_queries.list_requests(db, request.state.api_key.id)
    return ok([_public(r) for r in records])


@router.get("/{request_id}")
async def get_permission(request_id: str, request: Request):
    db = await get_db()
    record = await permission_queries.get_request(db, request_id, request.state.api_key.id)
    if not record:
        raise NotFoundOrForbidden("Permission not found")
    return ok(_public(record))


@router.delete("/{request_id}")
async def reject_permission(request_id: str, request: Request):
    db = await get_db()
    if not await permission_queries.reject_request(db, request_id, request.state.api_key.id):
        raise NotFoundOrForbidden("Permission not found")
    return ok()
