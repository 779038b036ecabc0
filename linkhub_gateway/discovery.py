"""Static discovery document served at ``/.well-known/mcp.json``.

Generated from the live tool and resource catalogs so it cannot drift from
what the endpoint actually serves.
"""

from __future__ import annotations

from typing import Any, Dict

from .config import DEFAULT_BASE_URL
from .dispatcher import SERVER_NAME
from .resources import RESOURCES
from .tools import TOOLS

DISCOVERY_CACHE_CONTROL = "public, max-age=3600, s-maxage=86400"


def build_discovery_document(base_url: str = DEFAULT_BASE_URL) -> Dict[str, Any]:
    base_url = base_url.rstrip("/")
    public_tools = [t.name for t in TOOLS.values() if not t.auth_required]
    auth_tools = [t.name for t in TOOLS.values() if t.auth_required]
    return {
        "schema_version": "1.0",
        "name": "LinkHub MCP Gateway",
        "server_name": SERVER_NAME,
        "description": (
            "Connect AI agents to LinkHub profiles. Each user profile exposes an MCP endpoint with tools "
            "for reading profile data, listing services and submitting inquiries."
        ),
        "endpoint_template": f"{base_url}/api/mcp/{{username}}",
        "transport": "streamable-http",
        "authentication": {
            "type": "bearer",
            "description": "API key from your LinkHub dashboard. Format: lh_xxxx...",
            "required_for": [f"tools/call ({name})" for name in auth_tools],
            "optional_for": [
                "initialize",
                "ping",
                "tools/list",
                "resources/list",
                "resources/read",
                *[f"tools/call ({name})" for name in public_tools],
            ],
        },
        "capabilities": {"tools": True, "resources": True, "prompts": False},
        "tools": [
            {"name": t.name, "description": t.description, "auth_required": t.auth_required}
            for t in TOOLS.values()
        ],
        "resources": [
            {"uri_template": r.uri_template, "description": r.description}
            for r in RESOURCES.values()
        ],
        "documentation": f"{base_url}/llms.txt",
        "_links": {
            "self": f"{base_url}/.well-known/mcp.json",
            "llms_txt": f"{base_url}/llms.txt",
        },
    }
