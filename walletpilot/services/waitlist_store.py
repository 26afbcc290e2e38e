"""Waitlist persistence: in-memory (single process) or Redis."""

from __future__ import annotations

from datetime import datetime, timezone
from typing import Protocol, runtime_checkable

from walletpilot.config import settings

EMAILS_KEY = "waitlist:emails"


@runtime_checkable
class WaitlistStore(Protocol):
    """Interface for waitlist signups."""

    async def add(self, email: str) -> bool: ...

    async def count(self) -> int: ...

    async def members(self) -> list[str]: ...


class MemoryWaitlistStore:
    """Development and tests. Lost on restart."""

    def __init__(self) -> None:
        self._signups: dict[str, str] = {}

    async def add(self, email: str) -> bool:
        """Add ``email``; False when it was already on the list."""
        if email in self._signups:
            return False
        self._signups[email] = datetime.now(timezone.utc).isoformat()
        return True

    async def count(self) -> int:
        return len(self._signups)

    async def members(self) -> list[str]:
        return sorted(self._signups)


class RedisWaitlistStore:
    """Set of emails plus one hash of signup details per email."""

    def __init__(self, url: str) -> None:
        import redis.asyncio as redis

        self._redis = redis.from_url(url, decode_responses=True)

    async def add(self, email: str) -> bool:
        added = await self._redis.sadd(EMAILS_KEY, email)
        if not added:
            return False
        await self._redis.hset(
            f"waitlist:{email}",
            mapping={"email": email, "createdAt": datetime.now(timezone.utc).isoformat()},
        )
        return True

    async def count(self) -> int:
        return int(await self._redis.scard(EMAILS_KEY))

    async def members(self) -> list[str]:
        return sorted(await self._redis.smembers(EMAILS_KEY))


_store: WaitlistStore | None = None


def get_waitlist_store() -> WaitlistStore:
    """Factory: returns the store for the configured backend (cached)."""
    global _store
    if _store is None:
        if settings.waitlist_backend == "redis":
            _store = RedisWaitlistStore(settings.redis_url)
        else:
            _store = MemoryWaitlistStore()
    return _store


def reset_waitlist_store() -> None:
    global _store
    _store = None
