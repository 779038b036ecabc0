"""JSON-RPC 2.0 request dispatcher for the per-profile agent endpoint.

The dispatcher is the only component that builds response envelopes. It
turns raw request bytes plus an optional credential into an ``RpcOutcome``
carrying the payload and the HTTP status the transport should use.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Union

from . import __version__, metrics
from .auth import AuthResult
from .demo import is_demo
from .errors import (
    AUTHENTICATION_FAILED,
    INTERNAL_ERROR,
    INVALID_PARAMS,
    INVALID_REQUEST,
    METHOD_NOT_FOUND,
    PARSE_ERROR,
    PERMISSION_DENIED,
    RpcError,
    error_envelope,
    rpc_error,
)
from .ops_stats import OPS_STATS
from .resources import ResourceResolver, list_resources
from .tools import ToolExecutionEngine, list_tools

logger = logging.getLogger("linkhub_gateway.dispatcher")

PROTOCOL_VERSION = "2024-11-05"
SERVER_NAME = "linkhub-mcp"
SERVER_VERSION = __version__

MSG_AUTH_REQUIRED = (
    "Authentication required. Provide a valid API key in the Authorization header (Bearer lh_xxx...)."
)
MSG_WRONG_PROFILE = "API key is not valid for this profile"


@dataclass
class RpcOutcome:
    payload: Dict[str, Any]
    http_status: int = 200
    # Parsed request body (None when the body was not valid JSON).
    request: Any = None

    @property
    def method(self) -> Optional[str]:
        if isinstance(self.request, dict) and isinstance(self.request.get("method"), str):
            return self.request["method"]
        return None


def _reject_constant(name: str) -> Any:
    # NaN and Infinity are not JSON and cannot be echoed back in a response.
    raise ValueError(f"non-standard JSON constant: {name}")


MethodHandler = Callable[[Dict[str, Any], str, Optional[AuthResult]], Dict[str, Any]]


class RequestDispatcher:
    def __init__(self, engine: ToolExecutionEngine, resolver: ResourceResolver):
        self.engine = engine
        self.resolver = resolver
        self._methods: Dict[str, MethodHandler] = {
            "initialize": self._initialize,
            "ping": self._ping,
            "tools/list": self._tools_list,
            "tools/call": self._tools_call,
            "resources/list": self._resources_list,
            "resources/read": self._resources_read,
        }

    # ---------------------------
    # Entry point
    # ---------------------------

    def dispatch(
        self,
        body: Union[bytes, str],
        username: str,
        auth: Optional[AuthResult] = None,
        *,
        authenticate: Optional[Callable[[], AuthResult]] = None,
    ) -> RpcOutcome:
        """Handle one request body.

        `auth` is None when no Authorization header was supplied. The
        transport may instead pass `authenticate`, which is only invoked once
        the body parsed, so malformed requests never consume rate-limit quota.
        A supplied credential that failed validation rejects the request
        whatever the method.
        """
        try:
            request = json.loads(body, parse_constant=_reject_constant)
        except (ValueError, UnicodeDecodeError, RecursionError):
            return self._error(None, None, PARSE_ERROR, "Parse error: invalid JSON", http_status=400)

        if not isinstance(request, dict):
            return self._error(None, request, PARSE_ERROR, "Parse error: expected JSON object")

        request_id = request.get("id")
        if authenticate is not None:
            try:
                auth = authenticate()
            except Exception:
                logger.exception("credential validation failed for username=%s", username)
                return self._error(request_id, request, INTERNAL_ERROR, "Internal error")
        if auth is not None and not auth.valid:
            return self._error(
                request_id, request, AUTHENTICATION_FAILED, auth.error or "Authentication failed", http_status=401
            )

        if request.get("jsonrpc") != "2.0":
            return self._error(request_id, request, INVALID_REQUEST, 'Invalid request: jsonrpc must be "2.0"')
        if request_id is None:
            return self._error(None, request, INVALID_REQUEST, "Invalid request: id is required")

        method = request.get("method")
        if not isinstance(method, str) or not method:
            return self._error(request_id, request, METHOD_NOT_FOUND, "Method not found")

        handler = self._methods.get(method)
        if handler is None:
            return self._error(request_id, request, METHOD_NOT_FOUND, f"Method not found: {method}")

        params = request.get("params")
        if params is None:
            params = {}
        if not isinstance(params, dict):
            return self._error(request_id, request, INVALID_PARAMS, "Invalid params: expected an object")

        try:
            result = handler(params, username, auth)
        except RpcError as e:
            return self._error(request_id, request, e.code, e.message, http_status=e.http_status, data=e.data)
        except Exception:
            logger.exception("unhandled error in %s for username=%s", method, username)
            return self._error(request_id, request, INTERNAL_ERROR, "Internal error")

        metrics.record_rpc(method, "ok")
        OPS_STATS.record_rpc(method)
        return RpcOutcome({"jsonrpc": "2.0", "id": request_id, "result": result}, 200, request)

    def _error(
        self,
        request_id: Any,
        request: Any,
        code: int,
        message: str,
        http_status: int = 200,
        data: Optional[Dict[str, Any]] = None,
    ) -> RpcOutcome:
        method = request.get("method") if isinstance(request, dict) else None
        method = method if isinstance(method, str) else None
        metrics.record_rpc(method, str(code))
        OPS_STATS.record_rpc(method or "unknown", error_code=code)
        return RpcOutcome(error_envelope(request_id, code, message, data), http_status, request)

    # ---------------------------
    # Methods
    # ---------------------------

    def _initialize(self, params: Dict[str, Any], username: str, auth: Optional[AuthResult]) -> Dict[str, Any]:
        return {
            "protocolVersion": PROTOCOL_VERSION,
            "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION},
            "capabilities": {"tools": {}, "resources": {}},
            "instructions": (
                f"You are interacting with the LinkHub profile of @{username}. Use tools to get profile "
                "info, list links and services, or send inquiries. Read-only operations do not require "
                "authentication. Write operations (send_message, request_quote) require a valid API key "
                'with "inquire" permission.'
            ),
        }

    def _ping(self, params: Dict[str, Any], username: str, auth: Optional[AuthResult]) -> Dict[str, Any]:
        return {}

    def _tools_list(self, params: Dict[str, Any], username: str, auth: Optional[AuthResult]) -> Dict[str, Any]:
        return {"tools": list_tools()}

    def _resources_list(self, params: Dict[str, Any], username: str, auth: Optional[AuthResult]) -> Dict[str, Any]:
        return {"resources": list_resources(username)}

    def _resources_read(self, params: Dict[str, Any], username: str, auth: Optional[AuthResult]) -> Dict[str, Any]:
        uri = params.get("uri")
        if not isinstance(uri, str) or not uri:
            raise rpc_error(INVALID_PARAMS, 'Missing or invalid "uri" parameter')
        return self.resolver.resolve(uri, username)

    def _tools_call(self, params: Dict[str, Any], username: str, auth: Optional[AuthResult]) -> Dict[str, Any]:
        name = params.get("name")
        if not isinstance(name, str) or not name:
            raise rpc_error(INVALID_PARAMS, 'Missing or invalid "name" parameter')

        tool = self.engine.get(name)
        if tool is None:
            raise rpc_error(INVALID_PARAMS, f"Unknown tool: {name}", available=sorted(self.engine.tools))

        arguments = params.get("arguments")
        if arguments is None:
            arguments = {}
        if not isinstance(arguments, dict):
            raise rpc_error(INVALID_PARAMS, 'Invalid "arguments" parameter: expected an object')

        if tool.auth_required:
            if auth is None:
                raise rpc_error(AUTHENTICATION_FAILED, MSG_AUTH_REQUIRED)
            # The demo profile writes nothing, so any valid key may exercise it.
            if not is_demo(username) and auth.username != username:
                logger.info("key_id=%s used against foreign profile", auth.key_id)
                raise rpc_error(AUTHENTICATION_FAILED, MSG_WRONG_PROFILE, http_status=401)
            if tool.permission and not auth.has_permission(tool.permission):
                raise rpc_error(
                    PERMISSION_DENIED,
                    f'Permission denied. Your API key needs the "{tool.permission}" permission to use {name}.',
                    required_permission=tool.permission,
                )

        return self.engine.execute(name, arguments, auth, username)
