"""API key generation and one-way hashing.

Keys look like ``lh_<32 hex chars>``. The ``lh_`` prefix exists so operators
can recognise a leaked LinkHub key; it carries no authorization weight. Only
the SHA-256 digest of a key is ever stored.
"""

from __future__ import annotations

import hashlib
import secrets

KEY_PREFIX = "lh_"
KEY_RANDOM_BYTES = 16
DISPLAY_PREFIX_CHARS = 8

PERMISSIONS = ("read", "write", "inquire")
DEFAULT_PERMISSIONS = ("read",)

RATE_LIMIT_TIERS = (50, 100, 500, 1000)
DEFAULT_RATE_LIMIT = 100


def generate_api_key() -> str:
    """Return a fresh bearer token."""
    return f"{KEY_PREFIX}{secrets.token_hex(KEY_RANDOM_BYTES)}"


def hash_api_key(raw_key: str) -> str:
    return hashlib.sha256(raw_key.encode("utf-8")).hexdigest()


def display_prefix(raw_key: str) -> str:
    """Prefix shown in listings, e.g. ``lh_1a2b3...``."""
    return raw_key[:DISPLAY_PREFIX_CHARS] + "..."


def has_key_format(raw_key: str) -> bool:
    return bool(raw_key) and raw_key.startswith(KEY_PREFIX)


def new_key_id() -> str:
    return f"key_{secrets.token_hex(8)}"
