"""Storage for SDK telemetry events."""

from __future__ import annotations

import json
import uuid

import aiosqlite


async def insert_event(
    db: aiosqlite.Connection,
    client_id: str,
    sdk_version: str,
    event_type: str,
    success: bool,
    error_type: str | None = None,
    chain_id: int | None = None,
    metadata: dict | None = None,
) -> str:
    event_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO telemetry_events
           (id, client_id, sdk_version, event_type, success, error_type, chain_id, metadata)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (event_id, client_id, sdk_version, event_type, int(success), error_type, chain_id,
         json.dumps(metadata) if metadata is not None else None),
    )
    await db.commit()
    return event_id


async def recent_events(db: aiosqlite.Connection, limit: int = 20) -> list[dict]:
    async with db.execute(
        "SELECT * FROM telemetry_events ORDER BY created_at DESC, rowid DESC LIMIT ?",
        (limit,),
    ) as cursor:
        rows = [dict(r) for r in await cursor.fetchall()]

    for row in rows:
        row["success"] = bool(row["success"])
        if row.get("metadata"):
            try:
                row["metadata"] = json.loads(row["metadata"])
            except (json.JSONDecodeError, TypeError):
                row["metadata"] = None
    return rows
