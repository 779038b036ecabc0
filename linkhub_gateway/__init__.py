"""LinkHub Agent Gateway package.

This package exposes every LinkHub profile to AI agents through an MCP
(JSON-RPC 2.0) endpoint:

- Public read tools and resources (profile, links, services, social)
- Transactional tools (send_message, request_quote) behind API keys
- SHA-256 hashed ``lh_`` API keys with permissions and per-key rate limits
- A discovery document at ``/.well-known/mcp.json``

Convenience imports
------------------
These are available as top-level imports and are loaded lazily:

    from linkhub_gateway import AgentGateway, create_app, GatewayStore
"""

from __future__ import annotations

import re
from importlib import import_module
from pathlib import Path
from typing import Any


def _read_version_from_pyproject() -> str | None:
    """Best-effort version discovery for dev/test environments.

    The project version is a simple `version = "..."` field in
    `pyproject.toml`, so a regex parse is enough.
    """

    try:
        pyproject = Path(__file__).resolve().parents[1] / "pyproject.toml"
        txt = pyproject.read_text(encoding="utf-8")
        m = re.search(r"^version\s*=\s*\"([^\"]+)\"\s*$", txt, flags=re.MULTILINE)
        return m.group(1) if m else None
    except OSError:
        return None


__version__ = (
    _read_version_from_pyproject()
    or "1.0.0"
)

__all__ = [
    "__version__",
    "AgentGateway",
    "create_app",
    "GatewayConfig",
    "GatewayStore",
    "ApiKeyManager",
    "RequestDispatcher",
]

# Lazy export map: name -> (module, attribute)
_LAZY_EXPORTS: dict[str, tuple[str, str]] = {
    "AgentGateway": ("linkhub_gateway.server", "AgentGateway"),
    "create_app": ("linkhub_gateway.server", "create_app"),
    "GatewayConfig": ("linkhub_gateway.config", "GatewayConfig"),
    "GatewayStore": ("linkhub_gateway.store", "GatewayStore"),
    "ApiKeyManager": ("linkhub_gateway.api_keys", "ApiKeyManager"),
    "RequestDispatcher": ("linkhub_gateway.dispatcher", "RequestDispatcher"),
}


def __getattr__(name: str) -> Any:
    if name in _LAZY_EXPORTS:
        module_name, attr = _LAZY_EXPORTS[name]
        module = import_module(module_name)
        value = getattr(module, attr)
        globals()[name] = value
        return value
    raise AttributeError(f"module 'linkhub_gateway' has no attribute {name!r}")


def __dir__() -> list[str]:
    return sorted(set(list(globals().keys()) + list(_LAZY_EXPORTS.keys())))
