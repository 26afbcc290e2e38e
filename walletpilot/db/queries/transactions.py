from __future__ import annotations

import uuid

import aiosqlite


async def create_transaction(
    db: aiosqlite.Connection,
    api_key_id: str,
    tx_hash: str,
    chain_id: int,
    to_address: str,
    value: str = "0",
    data: str | None = None,
    status: str = "confirmed",
) -> dict:
    tx_id = str(uuid.uuid4())
    await db.execute(
        """INSERT INTO transactions (id, api_key_id, hash, chain_id, to_address, value, data, status)
           VALUES (?, ?, ?, ?, ?, ?, ?, ?)""",
        (tx_id, api_key_id, tx_hash, chain_id, to_address, value, data, status),
    )
    await db.commit()
    async with db.execute("SELECT * FROM transactions WHERE id = ?", (tx_id,)) as cursor:
        return dict(await cursor.fetchone())


async def get_transaction_by_hash(
    db: aiosqlite.Connection, tx_hash: str, api_key_id: str
) -> dict | None:
    async with db.execute(
        "SELECT * FROM transactions WHERE hash = ? AND api_key_id = ?",
        (tx_hash, api_key_id),
    ) as cursor:
        row = await cursor.fetchone()
        return dict(row) if row else None
