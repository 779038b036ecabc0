"""Bearer credential validation for the agent gateway.

A caller presents ``Authorization: Bearer lh_...``. The token is hashed and
looked up in the credential store; the raw token is never stored or logged.
Successful validation consumes one unit of the key's rate-limit window and
schedules a best-effort ``last_used_at`` touch.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Callable, FrozenSet, Optional

from . import metrics
from .keys import DEFAULT_PERMISSIONS, has_key_format, hash_api_key
from .ops_stats import OPS_STATS
from .ratelimit import RateLimiter
from .store import CredentialStore

logger = logging.getLogger("linkhub_gateway.auth")

MSG_MISSING_HEADER = "Missing or invalid Authorization header"
MSG_INVALID_FORMAT = "Invalid key format"
MSG_INVALID_KEY = "Invalid API key"
MSG_DEACTIVATED = "API key is deactivated"
MSG_RATE_LIMITED = "Rate limit exceeded"

# Defers a callable until after the response is built (e.g. BackgroundTasks.add_task).
Defer = Callable[..., None]


@dataclass(frozen=True)
class AuthResult:
    """Outcome of validating one presented credential."""

    valid: bool
    permissions: FrozenSet[str] = frozenset()
    profile_id: Optional[str] = None
    username: Optional[str] = None
    key_id: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def rejected(cls, error: str) -> "AuthResult":
        return cls(valid=False, error=error)

    def has_permission(self, permission: str) -> bool:
        return self.valid and permission in self.permissions


class CredentialValidator:
    def __init__(self, store: CredentialStore, limiter: RateLimiter):
        self.store = store
        self.limiter = limiter

    def _reject(self, reason: str, message: str) -> AuthResult:
        metrics.record_auth_failure(reason)
        OPS_STATS.record_auth_failure(reason)
        return AuthResult.rejected(message)

    def _touch(self, key_id: str) -> None:
        try:
            self.store.touch_api_key(key_id)
        except Exception:
            logger.warning("failed to update last_used_at for key_id=%s", key_id, exc_info=True)

    def validate(self, authorization: Optional[str], defer: Optional[Defer] = None) -> AuthResult:
        """Validate an Authorization header value.

        `defer` receives the last-used touch so it runs after the response;
        without it the touch runs inline.
        """
        if not authorization or not authorization.startswith("Bearer "):
            return self._reject("missing_header", MSG_MISSING_HEADER)

        token = authorization[len("Bearer "):].strip()
        if not has_key_format(token):
            return self._reject("invalid_format", MSG_INVALID_FORMAT)

        record = self.store.get_api_key_by_hash(hash_api_key(token))
        if record is None:
            return self._reject("unknown_key", MSG_INVALID_KEY)
        if not record.is_active:
            return self._reject("deactivated", MSG_DEACTIVATED)

        if not self.limiter.allow(record.id, record.rate_limit):
            logger.info("rate limit exceeded key_id=%s quota=%s", record.id, record.rate_limit)
            metrics.record_rate_limited()
            OPS_STATS.record_rate_limited()
            return self._reject("rate_limited", MSG_RATE_LIMITED)

        if defer is not None:
            defer(self._touch, record.id)
        else:
            self._touch(record.id)

        return AuthResult(
            valid=True,
            permissions=frozenset(record.permissions or DEFAULT_PERMISSIONS),
            profile_id=record.profile_id,
            username=self.store.get_username(record.profile_id),
            key_id=record.id,
        )
