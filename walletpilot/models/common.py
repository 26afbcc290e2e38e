"""Helpers for the ``{success, data?, error?}`` response envelope."""

from typing import Any


def ok(data: Any = None, **extra: Any) -> dict:
    body: dict[str, Any] = {"success": True}
    if data is not None:
        body["data"] = data
    body.update(extra)
    return body


def fail(error: str) -> dict:
    return {"success": False, "error": error}
