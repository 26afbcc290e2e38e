"""Single entry point for every state change on stored API keys.

All routes and the auth middleware go through :class:`KeyStore`; nothing
else writes ``key_hash``, ``is_active`` or ``last_used_at``.
"""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable

import aiosqlite

from walletpilot.auth.api_keys import generate_api_key, hash_api_key, key_prefix
from walletpilot.config import settings
from walletpilot.db.database import get_db
from walletpilot.db.queries import api_keys as key_queries
from walletpilot.db.queries import profiles as profile_queries
from walletpilot.errors import NotFoundOrForbidden, QuotaExceeded, UpstreamUnavailable, ValidationError
from walletpilot.models.api_key import ApiKey

logger = logging.getLogger(__name__)

# Active keys allowed per plan. Revoked keys do not count.
PLAN_KEY_LIMITS = {"free": 2, "pro": 10, "enterprise": 100}
DEFAULT_PLAN = "free"

MAX_NAME_LENGTH = 100


def limit_for_plan(plan: str | None) -> int:
    return PLAN_KEY_LIMITS.get(plan or DEFAULT_PLAN, PLAN_KEY_LIMITS[DEFAULT_PLAN])


class KeyStore:
    def __init__(self, db: aiosqlite.Connection, timeout: float | None = None):
        self.db = db
        self.timeout = timeout if timeout is not None else settings.store_timeout_seconds

    async def _call(self, awaitable: Awaitable[Any]) -> Any:
        """Run a store call under the timeout; map driver failures to UpstreamUnavailable."""
        try:
            return await asyncio.wait_for(awaitable, timeout=self.timeout)
        except asyncio.TimeoutError:
            logger.warning("Key store call timed out after %.1fs", self.timeout)
            raise UpstreamUnavailable()
        except aiosqlite.Error:
            logger.exception("Key store call failed")
            raise UpstreamUnavailable()

    async def create(self, owner_id: str, name: str) -> tuple[str, ApiKey]:
        """Issue a key for ``owner_id``. Returns ``(raw_key, record)``.

        The raw key is returned here and nowhere else.
        """
        if not isinstance(name, str) or not 1 <= len(name) <= MAX_NAME_LENGTH:
            raise ValidationError(f"name must be 1-{MAX_NAME_LENGTH} characters")

        # Plan always comes from the profile row, never from the request.
        plan = await self._call(profile_queries.get_plan(self.db, owner_id))
        if plan is None:
            raise NotFoundOrForbidden("Account not found")
        limit = limit_for_plan(plan)

        raw_key = generate_api_key()
        key_hash = hash_api_key(raw_key)
        try:
            row = await self._call(
                key_queries.create_key_within_quota(
                    self.db, owner_id, key_hash, key_prefix(raw_key), name, limit
                )
            )
        except UpstreamUnavailable:
            await self._discard(key_hash)
            raise
        if row is None:
            logger.info("API key quota reached for user %s (plan=%s, limit=%d)", owner_id, plan, limit)
            raise QuotaExceeded(limit)

        record = ApiKey.from_row(row, user_id=owner_id)
        logger.info("Created API key %s for user %s", record.id, owner_id)
        return raw_key, record

    async def _discard(self, key_hash: str) -> None:
        """Undo a create the caller will never hear about.

        A timed-out insert keeps running on the connection's worker thread.
        The delete is queued behind it, so it removes the row whether the
        insert was committed, left pending or never happened.
        """
        try:
            await key_queries.discard_key_by_hash(self.db, key_hash)
        except aiosqlite.Error:
            logger.exception("Could not discard abandoned API key insert")

    async def validate(self, provided_key: Any) -> ApiKey | None:
        """Resolve a raw key to its active record, or None.

        Malformed input takes the same digest-and-lookup path as a real key,
        so the outcome never reveals why a key was rejected.
        """
        candidate = provided_key if isinstance(provided_key, str) else ""
        row = await self._call(key_queries.get_active_key_by_hash(self.db, hash_api_key(candidate)))
        if row is None:
            return None

        await self._call(key_queries.update_last_used(self.db, row["id"]))
        return ApiKey.from_row(row)

    async def list(self, owner_id: str) -> list[ApiKey]:
        rows = await self._call(key_queries.list_keys_for_user(self.db, owner_id))
        return [ApiKey.from_row(r, user_id=owner_id) for r in rows]

    async def count_active(self, owner_id: str) -> int:
        return await self._call(key_queries.count_active_keys(self.db, owner_id))

    async def revoke(self, key_id: str, owner_id: str) -> bool:
        revoked = await self._call(key_queries.revoke_key(self.db, key_id, owner_id))
        if revoked:
            logger.info("Revoked API key %s", key_id)
        return revoked

    async def delete(self, key_id: str, owner_id: str) -> bool:
        deleted = await self._call(key_queries.delete_key(self.db, key_id, owner_id))
        if deleted:
            logger.info("Deleted API key %s", key_id)
        return deleted


async def get_key_store() -> KeyStore:
    return KeyStore(await get_db())
