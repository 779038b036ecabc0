"""Owner-side API key management.

The raw secret is returned exactly once, by :meth:`ApiKeyManager.create`.
Everything else (listing, updates) works on the stored record, which holds
only the SHA-256 digest and a short display prefix.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional

from .errors import ApiKeyError
from .keys import (
    DEFAULT_PERMISSIONS,
    DEFAULT_RATE_LIMIT,
    PERMISSIONS,
    RATE_LIMIT_TIERS,
    display_prefix,
    generate_api_key,
    hash_api_key,
    new_key_id,
)
from .models import ApiKeyRecord
from .store import GatewayStore

logger = logging.getLogger("linkhub_gateway.api_keys")


@dataclass(frozen=True)
class CreatedApiKey:
    key: ApiKeyRecord
    full_key: str

    def as_dict(self) -> Dict[str, Any]:
        return {"key": self.key.public_view(), "full_key": self.full_key}


def _filter_permissions(permissions: Optional[Iterable[Any]]) -> List[str]:
    if permissions is None:
        return list(DEFAULT_PERMISSIONS)
    if isinstance(permissions, str):
        permissions = [permissions]
    seen: List[str] = []
    for p in permissions:
        if p in PERMISSIONS and p not in seen:
            seen.append(p)
    return seen


def coerce_rate_limit(rate_limit: Any) -> int:
    """Return `rate_limit` if it is an allowed tier, else the default tier."""
    if isinstance(rate_limit, bool):
        return DEFAULT_RATE_LIMIT
    return rate_limit if rate_limit in RATE_LIMIT_TIERS else DEFAULT_RATE_LIMIT


class ApiKeyManager:
    def __init__(self, store: GatewayStore):
        self.store = store

    def create(
        self,
        profile_id: str,
        name: str,
        permissions: Optional[Iterable[Any]] = None,
        rate_limit: Any = None,
    ) -> CreatedApiKey:
        if not name or not str(name).strip():
            raise ApiKeyError("Key name is required")
        perms = _filter_permissions(permissions)
        if not perms:
            raise ApiKeyError("At least one permission is required")

        raw = generate_api_key()
        record = ApiKeyRecord(
            id=new_key_id(),
            profile_id=profile_id,
            name=str(name).strip(),
            key_hash=hash_api_key(raw),
            key_prefix=display_prefix(raw),
            permissions=tuple(perms),
            rate_limit=coerce_rate_limit(rate_limit),
            is_active=True,
            created_at=datetime.now(timezone.utc).isoformat(),
        )
        self.store.insert_api_key(record)
        logger.info("created api key %s (%s) for profile_id=%s", record.id, record.key_prefix, profile_id)
        return CreatedApiKey(key=record, full_key=raw)

    def list(self, profile_id: str) -> List[Dict[str, Any]]:
        return [r.public_view() for r in self.store.list_api_keys(profile_id)]

    def update(
        self,
        profile_id: str,
        key_id: str,
        name: Optional[str] = None,
        is_active: Optional[bool] = None,
        permissions: Optional[Iterable[Any]] = None,
        rate_limit: Any = None,
    ) -> Dict[str, Any]:
        """Apply the valid subset of changes.

        Invalid permission sets and unsupported rate limits are ignored, as
        long as at least one valid change remains.
        """
        if not key_id:
            raise ApiKeyError("API key ID is required")

        updates: Dict[str, Any] = {}
        if name is not None and str(name).strip():
            updates["name"] = str(name).strip()
        if is_active is not None:
            updates["is_active"] = bool(is_active)
        if permissions is not None:
            perms = _filter_permissions(permissions)
            if perms:
                updates["permissions"] = perms
        if rate_limit is not None and not isinstance(rate_limit, bool) and rate_limit in RATE_LIMIT_TIERS:
            updates["rate_limit"] = rate_limit

        if not updates:
            raise ApiKeyError("No valid updates provided")

        record = self.store.update_api_key(profile_id, key_id, updates)
        if record is None:
            raise ApiKeyError(f"API key not found: {key_id}")
        logger.info("updated api key %s fields=%s", key_id, sorted(updates))
        return record.public_view()

    def revoke(self, profile_id: str, key_id: str) -> Dict[str, Any]:
        return self.update(profile_id, key_id, is_active=False)

    def delete(self, profile_id: str, key_id: str) -> None:
        if not key_id:
            raise ApiKeyError("API key ID is required")
        if not self.store.delete_api_key(profile_id, key_id):
            raise ApiKeyError(f"API key not found: {key_id}")
        logger.info("deleted api key %s for profile_id=%s", key_id, profile_id)
