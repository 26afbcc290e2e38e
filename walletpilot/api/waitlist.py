"""Marketing-site waitlist."""

from __future__ import annotations

import hmac
import logging

from fastapi import APIRouter, Request

from walletpilot.auth.middleware import bearer_token
from walletpilot.config import settings
from walletpilot.errors import Unauthenticated
from walletpilot.models.common import ok
from walletpilot.models.waitlist import WaitlistJoin
from walletpilot.services.waitlist_store import get_waitlist_store

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/waitlist", tags=["waitlist"])


@router.post("")
async def join_waitlist(body: WaitlistJoin):
    store = get_waitlist_store()
    if not await store.add(body.email):
        return ok(message="Already on the list!")

    logger.info("Waitlist signup (total: %d)", await store.count())
    return ok(message="You're on the list!")


@router.get("/count")
async def waitlist_count():
    try:
        count = await get_waitlist_store().count()
    except Exception:
        logger.exception("Waitlist count failed")
        count = 0
    return {"count": count}


@router.get("/list")
async def waitlist_list(request: Request):
    token = bearer_token(request) or ""
    if not settings.admin_secret or not hmac.compare_digest(token.encode(), settings.admin_secret.encode()):
        raise Unauthenticated("Unauthorized")
    emails = await get_waitlist_store().members()
    return ok(emails, count=len(emails))
