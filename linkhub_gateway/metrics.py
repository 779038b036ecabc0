"""Prometheus metrics for the agent gateway.

Metrics goals:
- low-cardinality labels (never usernames, key ids or tool arguments)
- visibility into RPC outcomes, auth failures, rate limits and tool calls
"""
from __future__ import annotations

import logging
import time
from typing import Callable, Optional

from prometheus_client import CONTENT_TYPE_LATEST, Counter, Histogram, generate_latest

logger = logging.getLogger("linkhub_gateway.metrics")


HTTP_REQUESTS_TOTAL = Counter(
    "linkhub_http_requests_total",
    "Total HTTP requests received",
    ["method", "route", "status"],
)
HTTP_REQUEST_LATENCY_SECONDS = Histogram(
    "linkhub_http_request_latency_seconds",
    "HTTP request latency in seconds",
    ["method", "route"],
    buckets=(0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1, 2, 5),
)
RPC_REQUESTS_TOTAL = Counter(
    "linkhub_rpc_requests_total",
    "JSON-RPC requests by method and outcome",
    ["method", "outcome"],
)
AUTH_FAILURES_TOTAL = Counter(
    "linkhub_auth_failures_total",
    "Rejected credentials by reason",
    ["reason"],
)
RATE_LIMIT_REJECT_TOTAL = Counter(
    "linkhub_rate_limit_reject_total",
    "Total rate-limit rejections",
)
TOOL_CALLS_TOTAL = Counter(
    "linkhub_tool_calls_total",
    "Tool invocations by tool and outcome",
    ["tool", "outcome"],
)

_KNOWN_METHODS = frozenset(
    ["initialize", "ping", "tools/list", "tools/call", "resources/list", "resources/read"]
)


def record_rpc(method: Optional[str], outcome: str) -> None:
    # Unknown methods are client-controlled; fold them into one label.
    label = method if method in _KNOWN_METHODS else "other"
    RPC_REQUESTS_TOTAL.labels(method=label, outcome=str(outcome)).inc()


def record_auth_failure(reason: str) -> None:
    AUTH_FAILURES_TOTAL.labels(reason=str(reason)).inc()


def record_rate_limited() -> None:
    RATE_LIMIT_REJECT_TOTAL.inc()


def record_tool_call(tool: str, outcome: str) -> None:
    TOOL_CALLS_TOTAL.labels(tool=str(tool), outcome=str(outcome)).inc()


def instrument_fastapi(app, authorize: Optional[Callable] = None) -> None:
    """Attach /metrics endpoint and request middleware to a FastAPI app.

    authorize: callable(request) -> bool. If provided and returns False, /metrics returns 403.
    """
    from fastapi import Request
    from fastapi.responses import Response

    @app.middleware("http")
    async def _metrics_middleware(request, call_next):
        start = time.time()
        status = 500
        try:
            response = await call_next(request)
            status = response.status_code
            return response
        finally:
            route = request.scope.get("route")
            route_path = getattr(route, "path", None) or request.url.path
            try:
                HTTP_REQUESTS_TOTAL.labels(method=request.method, route=route_path, status=str(status)).inc()
                HTTP_REQUEST_LATENCY_SECONDS.labels(method=request.method, route=route_path).observe(
                    time.time() - start
                )
            except ValueError:
                logger.debug("failed to record http metrics", exc_info=True)

    @app.get("/metrics")
    async def metrics_endpoint(request: Request):
        if authorize is not None and not authorize(request):
            return Response(status_code=403, content="FORBIDDEN")
        return Response(content=generate_latest(), media_type=CONTENT_TYPE_LATEST)
