"""API-key authentication for programmatic (SDK) routes."""

from __future__ import annotations

import logging

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from walletpilot.auth.key_store import get_key_store
from walletpilot.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)

# Paths that require an API key bearer (wp_...)
API_KEY_PATH_PREFIXES = ("/v1/permissions", "/v1/tx")

INVALID_KEY = {"success": False, "error": "Invalid API key"}


def bearer_token(request: Request) -> str | None:
    auth_header = request.headers.get("authorization", "")
    if not auth_header.startswith("Bearer "):
        return None
    return auth_header[7:].strip()


class AuthMiddleware(BaseHTTPMiddleware):
    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        request.state.api_key = None

        if not path.startswith(API_KEY_PATH_PREFIXES) or request.method == "OPTIONS":
            return await call_next(request)

        # Missing header, wrong scheme, wrong prefix and unknown key all
        # produce the same response.
        token = bearer_token(request) or ""
        try:
            store = await get_key_store()
            api_key = await store.validate(token)
        except UpstreamUnavailable as e:
            return JSONResponse(status_code=e.status_code, content={"success": False, "error": e.message})
        except RuntimeError:
            logger.error("API key check attempted before database init")
            return JSONResponse(status_code=503, content={"success": False, "error": "Service temporarily unavailable"})

        if api_key is None:
            return JSONResponse(status_code=401, content=INVALID_KEY)

        request.state.api_key = api_key
        return await call_next(request)
