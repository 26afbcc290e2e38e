"""Sliding-window rate limiter middleware."""

from __future__ import annotations

import time
from collections import deque

from fastapi import Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from walletpilot.auth.api_keys import hash_api_key
from walletpilot.config import settings

SKIP_PATHS = {"/", "/health", "/docs", "/openapi.json"}
WINDOW_SECONDS = 60.0


class RateLimitMiddleware(BaseHTTPMiddleware):
    """In-memory sliding window rate limiter.

    Runs before authentication. Requests are counted per client IP until a
    key has authenticated once; from then on that key has its own window.
    Unknown or guessed keys therefore always share the caller's IP window.
    """

    def __init__(self, app, limit: int | None = None):
        super().__init__(app)
        self.limit = limit or settings.rate_limit_per_minute
        self._windows: dict[str, deque[float]] = {}
        self._last_sweep = time.monotonic()

    async def dispatch(self, request: Request, call_next):
        path = request.url.path
        if path in SKIP_PATHS or path.startswith("/docs"):
            return await call_next(request)

        now = time.monotonic()
        self._sweep(now)

        key_window = self._key_window_name(request)
        if key_window in self._windows:
            name = key_window
        else:
            name = self._ip_window_name(request)

        window = self._prune(name, now)
        if window and len(window) >= self.limit:
            retry_after = int(WINDOW_SECONDS - (now - window[0])) + 1
            return JSONResponse(
                status_code=429,
                content={"success": False, "error": "Too many requests"},
                headers={"Retry-After": str(retry_after)},
            )
        self._windows.setdefault(name, deque()).append(now)

        response = await call_next(request)

        # Only a key that passed validation gets a window of its own.
        if key_window and name != key_window and getattr(request.state, "api_key", None) is not None:
            self._windows.setdefault(key_window, deque()).append(now)
        return response

    def _prune(self, name: str, now: float) -> deque[float] | None:
        window = self._windows.get(name)
        if window is None:
            return None
        cutoff = now - WINDOW_SECONDS
        while window and window[0] < cutoff:
            window.popleft()
        if not window:
            del self._windows[name]
            return None
        return window

    def _sweep(self, now: float) -> None:
        """Drop idle windows at most once per window length."""
        if now - self._last_sweep < WINDOW_SECONDS:
            return
        self._last_sweep = now
        for name in list(self._windows):
            self._prune(name, now)

    @staticmethod
    def _key_window_name(request: Request) -> str | None:
        auth_header = request.headers.get("authorization", "")
        token = auth_header[7:].strip() if auth_header.startswith("Bearer ") else ""
        if not token:
            return None
        return f"key:{hash_api_key(token)[:16]}"

    @staticmethod
    def _ip_window_name(request: Request) -> str:
        return f"ip:{request.client.host if request.client else 'unknown'}"
