"""Transaction endpoints (API-key authenticated).

Execution is simulated: the intent is recorded with a random hash and
reported as confirmed. Nothing is signed or broadcast.
"""

from __future__ import annotations

import logging
import secrets

from fastapi import APIRouter, Request

from walletpilot.db.database import get_db
from walletpilot.db.queries import transactions as tx_queries
from walletpilot.errors import NotFoundOrForbidden
from walletpilot.models.common import ok
from walletpilot.models.transaction import ExecuteRequest

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/v1/tx", tags=["transactions"])


def _public(tx: dict) -> dict:
    return {
        "id": tx["id"],
        "hash": tx["hash"],
        "chainId": tx["chain_id"],
        "to": tx["to_address"],
        "value": tx["value"],
        "status": tx["status"],
        "createdAt": tx["created_at"],
    }


@router.post("/execute")
async def execute(body: ExecuteRequest, request: Request):
    api_key = request.state.api_key
    intent = body.intent
    tx_hash = "0x" + secrets.token_hex(32)

    db = await get_db()
    tx = await tx_queries.create_transaction(
        db, api_key.id, tx_hash, intent.chain_id, intent.to, intent.value, intent.data,
    )
    logger.info("Simulated transaction %s on chain %d for key %s", tx["id"], intent.chain_id, api_key.id)
    return ok({
        "id": tx["id"],
        "hash": tx["hash"],
        "chainId": tx["chain_id"],
        "status": tx["status"],
    })


@router.get("/{tx_hash}")
async def get_transaction(tx_hash: str, request: Request):
    db = await get_db()
    tx = await tx_queries.get_transaction_by_hash(db, tx_hash, request.state.api_key.id)
    if not tx:
        raise NotFoundOrForbidden("Transaction not found")
    return ok(_public(tx))
