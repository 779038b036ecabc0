"""Stable error taxonomy for the LinkHub agent gateway.

This module defines the JSON-RPC error codes the gateway emits and a single
exception type used by method handlers, the resource resolver and the API key
manager.

Design goals:
- Numeric `code` matching JSON-RPC 2.0 (standard + reserved server range).
- Optional `http_status` for the transport layer.
- Structured `data` for clients without parsing messages.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, Optional


# JSON-RPC 2.0 standard codes
PARSE_ERROR = -32700
INVALID_REQUEST = -32600
METHOD_NOT_FOUND = -32601
INVALID_PARAMS = -32602
INTERNAL_ERROR = -32603

# Server-reserved range
AUTHENTICATION_FAILED = -32001
PERMISSION_DENIED = -32002


@dataclass
class RpcError(Exception):
    """Protocol-level failure converted to a JSON-RPC error object."""

    code: int
    message: str
    http_status: int = 200
    data: Dict[str, Any] = field(default_factory=dict)

    def __str__(self) -> str:
        return f"{self.code}: {self.message}"


class ResourceNotFound(RpcError):
    """Raised by the resource resolver for unknown or foreign URIs."""

    def __init__(self, uri: str):
        super().__init__(code=INVALID_PARAMS, message=f"Resource not found: {uri}")
        self.uri = uri


class ApiKeyError(ValueError):
    """Raised by API key management for invalid owner requests."""


def rpc_error(
    code: int,
    message: str,
    *,
    http_status: int = 200,
    **data: Any,
) -> RpcError:
    return RpcError(code=code, message=message, http_status=http_status, data=data)


def error_envelope(
    request_id: Optional[Any],
    code: int,
    message: str,
    data: Optional[Dict[str, Any]] = None,
) -> Dict[str, Any]:
    """Build a JSON-RPC error response; unknown ids are reported as 0."""
    error: Dict[str, Any] = {"code": int(code), "message": message}
    if data:
        error["data"] = data
    return {
        "jsonrpc": "2.0",
        "id": 0 if request_id is None else request_id,
        "error": error,
    }
