from __future__ import annotations

from pydantic import BaseModel, field_validator


class WaitlistJoin(BaseModel):
    email: str

    @field_validator("email", mode="before")
    @classmethod
    def normalise_email(cls, value: object) -> str:
        email = value.strip().lower() if isinstance(value, str) else ""
        if "@" not in email:
            raise ValueError("Invalid email")
        return email
