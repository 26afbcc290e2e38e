"""API key generation and hashing.

Keys look like ``wp_`` followed by 24 random bytes in unpadded URL-safe
base64 (32 characters). Only the SHA-256 digest is stored. The key carries
192 bits of randomness, so a fast unsalted digest is enough: there is no
dictionary to precompute against, and a deterministic digest lets
validation look the key up directly instead of scanning candidates.
"""

from __future__ import annotations

import base64
import hashlib
import secrets

KEY_PREFIX = "wp_"
KEY_RANDOM_BYTES = 24
DISPLAY_PREFIX_LENGTH = 11


def generate_api_key() -> str:
    """Return a new raw API key. Uses the OS CSPRNG via ``secrets``."""
    raw = secrets.token_bytes(KEY_RANDOM_BYTES)
    encoded = base64.urlsafe_b64encode(raw).decode("ascii").rstrip("=")
    return f"{KEY_PREFIX}{encoded}"


def key_prefix(key: str) -> str:
    """Display form of a key, e.g. ``wp_abc12345...``."""
    return key[:DISPLAY_PREFIX_LENGTH] + "..."


def hash_api_key(key: str) -> str:
    """SHA-256 hex digest used for storage and lookup."""
    return hashlib.sha256(key.encode("utf-8")).hexdigest()
