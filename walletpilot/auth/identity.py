"""Identity provider client: sign-up, sign-in, token refresh and token lookup.

Accounts and sessions live in Supabase Auth (GoTrue). This module only
speaks its REST API; tokens stay opaque to the rest of the app.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Protocol, runtime_checkable

import httpx

from walletpilot.config import settings
from walletpilot.errors import IdentityError, UpstreamUnavailable

logger = logging.getLogger(__name__)


@dataclass
class Account:
    id: str
    email: str


@dataclass
class AuthSession:
    access_token: str
    refresh_token: str
    expires_at: int | None
    account: Account | None = None


@runtime_checkable
class IdentityProvider(Protocol):
    """Interface for the external account/session authority."""

    async def create_user(self, email: str, password: str) -> Account: ...

    async def sign_in(self, email: str, password: str) -> AuthSession: ...

    async def refresh(self, refresh_token: str) -> AuthSession: ...

    async def get_user_from_token(self, token: str) -> Account: ...


class SupabaseIdentityProvider:
    """GoTrue REST client. Uses the service-role key for admin calls."""

    def __init__(
        self,
        base_url: str,
        service_key: str,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/") + "/auth/v1"
        self.service_key = service_key
        self.timeout = timeout
        self._transport = transport

    def _headers(self, bearer: str | None = None) -> dict[str, str]:
        return {
            "apikey": self.service_key,
            "Authorization": f"Bearer {bearer or self.service_key}",
            "Content-Type": "application/json",
        }

    async def _request(
        self, method: str, path: str, *, bearer: str | None = None, **kwargs
    ) -> dict:
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                resp = await client.request(
                    method, f"{self.base_url}{path}", headers=self._headers(bearer), **kwargs
                )
        except httpx.TimeoutException:
            logger.warning("Identity provider timed out on %s %s", method, path)
            raise UpstreamUnavailable()
        except httpx.HTTPError as e:
            logger.error("Identity provider unreachable on %s %s: %s", method, path, e)
            raise UpstreamUnavailable()

        if resp.status_code >= 500:
            logger.error("Identity provider returned %d on %s %s", resp.status_code, method, path)
            raise UpstreamUnavailable()
        if resp.status_code >= 400:
            raise IdentityError(_error_message(resp), status_code=resp.status_code)
        return resp.json()

    async def create_user(self, email: str, password: str) -> Account:
        data = await self._request(
            "POST",
            "/admin/users",
            json={"email": email, "password": password, "email_confirm": True},
        )
        return _account(data)

    async def sign_in(self, email: str, password: str) -> AuthSession:
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
        )
        return _session(data)

    async def refresh(self, refresh_token: str) -> AuthSession:
        data = await self._request(
            "POST",
            "/token",
            params={"grant_type": "refresh_token"},
            json={"refresh_token": refresh_token},
        )
        return _session(data)

    async def get_user_from_token(self, token: str) -> Account:
        data = await self._request("GET", "/user", bearer=token)
        return _account(data)


def _account(data: dict) -> Account:
    # Admin endpoints wrap the user object; /user returns it bare.
    user = data.get("user", data)
    return Account(id=user["id"], email=user.get("email", ""))


def _session(data: dict) -> AuthSession:
    return AuthSession(
        access_token=data["access_token"],
        refresh_token=data["refresh_token"],
        expires_at=data.get("expires_at"),
        account=_account(data["user"]) if data.get("user") else None,
    )


def _error_message(resp: httpx.Response) -> str:
    try:
        body = resp.json()
    except ValueError:
        return "Request rejected by identity provider"
    return body.get("msg") or body.get("error_description") or body.get("message") or "Request rejected by identity provider"


_provider: IdentityProvider | None = None


def get_identity_provider() -> IdentityProvider | None:
    """Return the configured provider, or None when credentials are missing."""
    global _provider
    if _provider is None and settings.identity_configured:
        _provider = SupabaseIdentityProvider(
            settings.supabase_url,
            settings.supabase_service_role_key,
            timeout=settings.identity_timeout_seconds,
        )
    return _provider


def set_identity_provider(provider: IdentityProvider | None) -> None:
    """Swap the provider (tests and alternate deployments)."""
    global _provider
    _provider = provider
