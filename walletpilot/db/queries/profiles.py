from __future__ import annotations

import aiosqlite


async def get_profile(db: aiosqlite.Connection, user_id: str) -> dict | None:
    async with db.execute("SELECT * FROM profiles WHERE id = ?", (user_id,)) as cursor:
        row = await cursor.fetchone()
        return dict(row) if row else None


async def get_plan(db: aiosqlite.Connection, user_id: str) -> str | None:
    async with db.execute("SELECT plan FROM profiles WHERE id = ?", (user_id,)) as cursor:
        row = await cursor.fetchone()
        return row["plan"] if row else None


async def upsert_profile(
    db: aiosqlite.Connection,
    user_id: str,
    email: str,
    name: str | None = None,
    company: str | None = None,
) -> None:
    """Create the profile row for an identity account, or refresh its details.

    The plan column is never written here; it only changes through billing.
    """
    await db.execute(
        """INSERT INTO profiles (id, email, name, company)
           VALUES (?, ?, ?, ?)
           ON CONFLICT(id) DO UPDATE SET
               email = excluded.email,
               name = COALESCE(excluded.name, profiles.name),
               company = COALESCE(excluded.company, profiles.company),
               updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now')""",
        (user_id, email, name, company),
    )
    await db.commit()


async def set_plan(db: aiosqlite.Connection, user_id: str, plan: str) -> bool:
    result = await db.execute(
        "UPDATE profiles SET plan = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%fZ', 'now') WHERE id = ?",
        (plan, user_id),
    )
    await db.commit()
    return result.rowcount > 0
