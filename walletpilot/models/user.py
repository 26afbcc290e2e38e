from __future__ import annotations

from pydantic import BaseModel, EmailStr, Field


class SignupRequest(BaseModel):
    email: EmailStr
    password: str = Field(min_length=6)
    name: str | None = None
    company: str | None = None


class LoginRequest(BaseModel):
    email: EmailStr
    password: str


class Profile(BaseModel):
    id: str
    email: str
    name: str | None = None
    company: str | None = None
    plan: str = "free"
    created_at: str | None = None

    def to_public(self) -> dict:
        return {
            "id": self.id,
            "email": self.email,
            "name": self.name,
            "company": self.company,
            "plan": self.plan,
            "createdAt": self.created_at,
        }
