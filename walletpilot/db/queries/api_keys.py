from __future__ import annotations

import uuid

import aiosqlite

_NOW = "strftime('%Y-%m-%dT%H:%M:%fZ', 'now')"


async def list_keys_for_user(db: aiosqlite.Connection, user_id: str) -> list[dict]:
    async with db.execute(
        "SELECT id, name, key_prefix, is_active, last_used_at, created_at "
        "FROM api_keys WHERE user_id = ? ORDER BY created_at DESC, rowid DESC",
        (user_id,),
    ) as cursor:
        rows = await cursor.fetchall()
        return [dict(r) for r in rows]


async def get_active_key_by_hash(db: aiosqlite.Connection, key_hash: str) -> dict | None:
    async with db.execute(
        "SELECT * FROM api_keys WHERE key_hash = ? AND is_active = 1", (key_hash,)
    ) as cursor:
        row = await cursor.fetchone()
        return dict(row) if row else None


async def count_active_keys(db: aiosqlite.Connection, user_id: str) -> int:
    async with db.execute(
        "SELECT COUNT(*) FROM api_keys WHERE user_id = ? AND is_active = 1", (user_id,)
    ) as cursor:
        row = await cursor.fetchone()
        return row[0]


async def create_key_within_quota(
    db: aiosqlite.Connection,
    user_id: str,
    key_hash: str,
    key_prefix: str,
    name: str,
    limit: int,
) -> dict | None:
    """Insert a key only if the owner holds fewer than ``limit`` active keys.

    The count and the insert are a single statement, so two concurrent
    creates cannot both pass the check. Returns the new row, or None when
    the quota is already used up.
    """
    key_id = str(uuid.uuid4())
    result = await db.execute(
        """INSERT INTO api_keys (id, user_id, name, key_hash, key_prefix)
           SELECT ?, ?, ?, ?, ?
           WHERE (SELECT COUNT(*) FROM api_keys WHERE user_id = ? AND is_active = 1) < ?""",
        (key_id, user_id, name, key_hash, key_prefix, user_id, limit),
    )
    await db.commit()
    if result.rowcount == 0:
        return None

    async with db.execute(
        "SELECT id, name, key_prefix, is_active, last_used_at, created_at FROM api_keys WHERE id = ?",
        (key_id,),
    ) as cursor:
        row = await cursor.fetchone()
        return dict(row)


async def update_last_used(db: aiosqlite.Connection, key_id: str) -> None:
    await db.execute(
        f"UPDATE api_keys SET last_used_at = {_NOW} WHERE id = ?", (key_id,)
    )
    await db.commit()


async def revoke_key(db: aiosqlite.Connection, key_id: str, user_id: str) -> bool:
    result = await db.execute(
        "UPDATE api_keys SET is_active = 0 WHERE id = ? AND user_id = ?",
        (key_id, user_id),
    )
    await db.commit()
    return result.rowcount > 0


async def delete_key(db: aiosqlite.Connection, key_id: str, user_id: str) -> bool:
    result = await db.execute(
        "DELETE FROM api_keys WHERE id = ? AND user_id = ?",
        (key_id, user_id),
    )
    await db.commit()
    return result.rowcount > 0


async def discard_key_by_hash(db: aiosqlite.Connection, key_hash: str) -> None:
    """Remove a key whose creation was abandoned before the caller saw it."""
    await db.execute("DELETE FROM api_keys WHERE key_hash = ?", (key_hash,))
    await db.commit()
