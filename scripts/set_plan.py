"""Operator script: change an account's plan (and therefore its API key quota).

Usage: python -m scripts.set_plan <user_id> <free|pro|enterprise>
"""

from __future__ import annotations

import asyncio
import logging
import sys

from walletpilot.auth.key_store import PLAN_KEY_LIMITS

logger = logging.getLogger(__name__)
logging.basicConfig(level=logging.INFO)


async def _set_plan(user_id: str, plan: str) -> bool:
    from walletpilot.db.database import init_db, get_db, close_db
    from walletpilot.db.queries.profiles import set_plan

    await init_db()
    try:
        db = await get_db()
        updated = await set_plan(db, user_id, plan)
        if updated:
            logger.info("User %s moved to plan %s (key limit %d)", user_id, plan, PLAN_KEY_LIMITS[plan])
        else:
            logger.error("No profile found for user %s", user_id)
        return updated
    finally:
        await close_db()


def main(argv: list[str]) -> int:
    if len(argv) != 2 or argv[1] not in PLAN_KEY_LIMITS:
        print(__doc__.strip().splitlines()[-1], file=sys.stderr)
        return 2
    return 0 if asyncio.run(_set_plan(argv[0], argv[1])) else 1


if __name__ == "__main__":
    sys.exit(main(sys.argv[1:]))
