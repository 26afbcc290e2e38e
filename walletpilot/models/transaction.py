from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class TransactionIntent(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    chain_id: int = Field(alias="chainId")
    to: str = Field(min_length=1)
    value: str = "0"
    data: str | None = None


class ExecuteRequest(BaseModel):
    intent: TransactionIntent
