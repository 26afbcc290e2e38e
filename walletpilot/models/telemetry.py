from __future__ import annotations

from typing import Any

from pydantic import BaseModel, Field


class TelemetryEvent(BaseModel):
    client_id: str = Field(min_length=1)
    sdk_version: str = Field(min_length=1)
    event_type: str = Field(min_length=1)
    success: bool
    error_type: str | None = None
    chain_id: int | None = None
    metadata: dict[str, Any] | None = None
