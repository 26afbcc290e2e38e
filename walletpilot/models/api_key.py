from __future__ import annotations

from pydantic import BaseModel, Field


class ApiKeyCreate(BaseModel):
    name: str = Field(min_length=1, max_length=100)


class ApiKey(BaseModel):
    """Stored API key as seen by application code. Never carries the digest."""

    id: str
    user_id: str
    name: str
    prefix: str
    is_active: bool = True
    last_used_at: str | None = None
    created_at: str | None = None

    @classmethod
    def from_row(cls, row: dict, user_id: str | None = None) -> "ApiKey":
        return cls(
            id=row["id"],
            user_id=row.get("user_id") or user_id,
            name=row["name"],
            prefix=row["key_prefix"],
            is_active=bool(row["is_active"]),
            last_used_at=row.get("last_used_at"),
            created_at=row.get("created_at"),
        )

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "prefix": self.prefix,
            "lastUsedAt": self.last_used_at,
            "isActive": self.is_active,
            "createdAt": self.created_at,
        }


class ApiKeyCreated(BaseModel):
    """Returned only on creation; the only place the raw key ever appears."""

    id: str
    name: str
    key: str
    prefix: str
    message: str = "Save this key - it won't be shown again."
