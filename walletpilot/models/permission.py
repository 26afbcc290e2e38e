from __future__ import annotations

from pydantic import BaseModel, ConfigDict, Field


class PermissionSpec(BaseModel):
    """Requested permission. Only ``expiry`` is interpreted; the rest is passed through."""

    model_config = ConfigDict(extra="allow")

    expiry: str = "30d"


class PermissionRequestCreate(BaseModel):
    permission: PermissionSpec = Field(default_factory=PermissionSpec)
    chains: list[int] = []
    callback_url: str | None = Field(default=None, alias="callbackUrl")

    model_config = ConfigDict(populate_by_name=True)
