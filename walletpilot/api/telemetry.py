"""SDK telemetry ingestion."""

from __future__ import annotations

from fastapi import APIRouter, Query, Request
from fastapi.responses import JSONResponse

from walletpilot.auth.sessions import require_account
from walletpilot.db.database import get_db
from walletpilot.db.queries import telemetry as telemetry_queries
from walletpilot.models.common import ok
from walletpilot.models.telemetry import TelemetryEvent

router = APIRouter(prefix="/v1/events", tags=["telemetry"])


@router.post("")
async def ingest_event(event: TelemetryEvent):
    db = await get_db()
    event_id = await telemetry_queries.insert_event(
        db,
        event.client_id,
        event.sdk_version,
        event.event_type,
        event.success,
        error_type=event.error_type,
        chain_id=event.chain_id,
        metadata=event.metadata,
    )
    return JSONResponse(status_code=201, content=ok({"id": event_id}))


@router.get("")
async def list_events(request: Request, limit: int = Query(20, ge=1, le=100)):
    await require_account(request)
    db = await get_db()
    return ok(await telemetry_queries.recent_events(db, limit))
