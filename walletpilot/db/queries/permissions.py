from __future__ import annotations

import json
import uuid

import aiosqlite


def _decode(row: aiosqlite.Row) -> dict:
    record = dict(row)
    record["permission"] = json.loads(record["permission"])
    record["chains"] = json.loads(record["chains"])
    return record


async def create_request(
    db: aiosqlite.Connection,
    api_key_id: str,
    permission: dict,
    chains: list[int],
    deep_link: str,
    expires_at: str,
    callback_url: str | None = None,
) -> str:
    request_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO permission_requests
           (id, api_key_id, permission, chains, callback_url, deep_link, expires_at)
           VALUES (?, ?, ?, ?, ?, ?, ?)""",
        (request_id, api_key_id, json.dumps(permission), json.dumps(chains),
         callback_url, deep_link, expires_at),
    )
    await db.commit()
    return request_id


async def get_request(db: aiosqlite.Connection, request_id: str, api_key_id: str) -> dict | None:
    async with db.execute(
        "SELECT * FROM permission_requests WHERE id = ? AND api_key_id = ?",
        (request_id, api_key_id),
    ) as cursor:
        row = await cursor.fetchone()
        return _decode(row) if row else None


async def list_requests(db: aiosqlite.Connection, api_key_id: str) -> list[dict]:
    async with db.execute(
        "SELECT * FROM permission_requests WHERE api_key_id = ? ORDER BY created_at DESC, rowid DESC",
        (api_key_id,),
    ) as cursor:
        return [_decode(r) for r in await cursor.fetchall()]


async def reject_request(db: aiosqlite.Connection, request_id: str, api_key_id: str) -> bool:
    result = await db.execute(
        "UPDATE permission_requests SET status = 'rejected' WHERE id = ? AND api_key_id = ?",
        (request_id, api_key_id),
    )
    await db.commit()
    return result.rowcount > 0
