"""Error taxonomy shared by the key store, the identity client and the routes."""

from __future__ import annotations


class WalletPilotError(Exception):
    """Base error. ``message`` is safe to show to API callers."""

    status_code = 500

    def __init__(self, message: str = "Internal server error", status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class Unauthenticated(WalletPilotError):
    """Missing or invalid session / API-key bearer."""

    status_code = 401

    def __init__(self, message: str = "Unauthorized"):
        super().__init__(message)


class QuotaExceeded(WalletPilotError):
    """The owner's plan does not allow another active API key."""

    status_code = 403

    def __init__(self, limit: int):
        super().__init__(f"API key limit reached ({limit}). Upgrade your plan for more.")
        self.limit = limit


class NotFoundOrForbidden(WalletPilotError):
    """Resource missing or owned by someone else. The two are never distinguished."""

    status_code = 404

    def __init__(self, message: str = "Not found"):
        super().__init__(message)


class ValidationError(WalletPilotError):
    status_code = 400

    def __init__(self, message: str = "Invalid request"):
        super().__init__(message)


class UpstreamUnavailable(WalletPilotError):
    """Backing store or identity provider unreachable, slow or misconfigured."""

    status_code = 503

    def __init__(self, message: str = "Service temporarily unavailable"):
        super().__init__(message)


class IdentityError(WalletPilotError):
    """The identity provider rejected the request (bad credentials, duplicate user...)."""

    status_code = 400
