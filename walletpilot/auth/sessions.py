"""Session bearer resolution for dashboard/account routes.

Session tokens are issued by the identity provider and stay opaque here:
each request is checked with the provider, nothing is cached locally.
"""

from __future__ import annotations

from fastapi import Request

from walletpilot.auth.identity import Account, IdentityProvider, get_identity_provider
from walletpilot.auth.middleware import bearer_token
from walletpilot.errors import IdentityError, Unauthenticated, UpstreamUnavailable

INVALID_SESSION = "Invalid or missing access token"


def require_identity() -> IdentityProvider:
    provider = get_identity_provider()
    if provider is None:
        raise UpstreamUnavailable("Auth not configured")
    return provider


async def require_account(request: Request) -> Account:
    """Return the account behind the session bearer, or raise Unauthenticated."""
    provider = require_identity()
    token = bearer_token(request)
    if not token:
        raise Unauthenticated(INVALID_SESSION)
    try:
        account = await provider.get_user_from_token(token)
    except IdentityError:
        raise Unauthenticated(INVALID_SESSION)
    request.state.user = account
    return account
