"""Gateway configuration loaded from environment variables.

Environment variables:
- LINKHUB_DB_PATH: sqlite database path.
- LINKHUB_BASE_URL: public base URL used in discovery and profile links.
- LINKHUB_RATE_LIMIT_WINDOW_SECONDS: fixed rate-limit window per key.
- LINKHUB_RATE_LIMIT_BACKEND: 'memory' (per-process) or 'redis'.
- LINKHUB_REDIS_URL: redis connection URL for the redis backend.
- LINKHUB_RATE_LIMIT_MAX_KEYS: cap on tracked keys for the memory backend.
- LINKHUB_MAX_REQUEST_BYTES: reject larger bodies with 413.
- LINKHUB_STATS_TOKEN: if set, /v1/stats requires this bearer token.
- LINKHUB_METRICS_ENABLED: '0' disables Prometheus instrumentation.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

DEFAULT_BASE_URL = "https://linkhub-iota-red.vercel.app"


def _get_int(name: str, default: int) -> int:
    try:
        return int(os.getenv(name, str(default)).strip())
    except (TypeError, ValueError):
        return default


def _get_bool(name: str, default: bool) -> bool:
    v = (os.getenv(name, "") or "").strip().lower()
    if not v:
        return default
    return v in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class GatewayConfig:
    db_path: str = "linkhub_gateway.db"
    base_url: str = DEFAULT_BASE_URL
    rate_limit_window_seconds: int = 3600
    rate_limit_backend: str = "memory"
    redis_url: str = "redis://localhost:6379/0"
    rate_limit_max_keys: int = 20000
    max_request_bytes: int = 1048576
    stats_token: str = ""
    metrics_enabled: bool = True

    @classmethod
    def from_env(cls) -> "GatewayConfig":
        window = _get_int("LINKHUB_RATE_LIMIT_WINDOW_SECONDS", cls.rate_limit_window_seconds)
        max_keys = _get_int("LINKHUB_RATE_LIMIT_MAX_KEYS", cls.rate_limit_max_keys)
        max_bytes = _get_int("LINKHUB_MAX_REQUEST_BYTES", cls.max_request_bytes)
        backend = (os.getenv("LINKHUB_RATE_LIMIT_BACKEND", cls.rate_limit_backend) or "").strip().lower()

        # Clamp
        if window < 1:
            window = cls.rate_limit_window_seconds
        if max_keys < 1:
            max_keys = cls.rate_limit_max_keys
        if max_bytes < 1:
            max_bytes = cls.max_request_bytes
        if backend not in ("memory", "redis"):
            backend = cls.rate_limit_backend

        return cls(
            db_path=os.getenv("LINKHUB_DB_PATH", cls.db_path).strip() or cls.db_path,
            base_url=(os.getenv("LINKHUB_BASE_URL", cls.base_url).strip() or cls.base_url).rstrip("/"),
            rate_limit_window_seconds=window,
            rate_limit_backend=backend,
            redis_url=os.getenv("LINKHUB_REDIS_URL", cls.redis_url).strip() or cls.redis_url,
            rate_limit_max_keys=max_keys,
            max_request_bytes=max_bytes,
            stats_token=(os.getenv("LINKHUB_STATS_TOKEN", "") or "").strip(),
            metrics_enabled=_get_bool("LINKHUB_METRICS_ENABLED", True),
        )
