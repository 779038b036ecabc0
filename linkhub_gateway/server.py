"""
LinkHub Agent Gateway - HTTP transport.

One JSON-RPC endpoint per profile (``POST /api/mcp/{username}``) plus the
discovery document and operational endpoints. All protocol decisions live in
the dispatcher; this module only moves bytes, headers and background work.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass
from typing import Optional

from fastapi import BackgroundTasks, FastAPI, HTTPException, Request
from fastapi.responses import JSONResponse, Response

from .auth import CredentialValidator
from .config import GatewayConfig
from .discovery import DISCOVERY_CACHE_CONTROL, build_discovery_document
from .dispatcher import RequestDispatcher
from .metrics import instrument_fastapi
from .ops_stats import OPS_STATS
from .profiles import ProfileReader
from .ratelimit import RateLimiter, build_rate_limiter_from_config
from .resources import ResourceResolver
from .store import GatewayStore
from .tools import ToolExecutionEngine
from .visits import VisitTracker

logger = logging.getLogger("linkhub_gateway.server")

CORS_HEADERS = {
    "Access-Control-Allow-Origin": "*",
    "Access-Control-Allow-Methods": "POST, OPTIONS",
    "Access-Control-Allow-Headers": "Content-Type, Authorization",
}
MCP_HEADERS = {**CORS_HEADERS, "X-LinkHub-MCP": "1.0"}
PREFLIGHT_MAX_AGE = "86400"


@dataclass
class AgentGateway:
    """Wires the store, limiter and request pipeline together."""

    config: GatewayConfig
    store: GatewayStore
    limiter: RateLimiter
    validator: CredentialValidator
    dispatcher: RequestDispatcher
    tracker: VisitTracker

    @classmethod
    def build(
        cls,
        config: Optional[GatewayConfig] = None,
        store: Optional[GatewayStore] = None,
        limiter: Optional[RateLimiter] = None,
    ) -> "AgentGateway":
        config = config or GatewayConfig.from_env()
        store = store or GatewayStore(config.db_path)
        limiter = limiter or build_rate_limiter_from_config(config)
        reader = ProfileReader(store, base_url=config.base_url)
        dispatcher = RequestDispatcher(
            engine=ToolExecutionEngine(store=store, reader=reader),
            resolver=ResourceResolver(reader),
        )
        return cls(
            config=config,
            store=store,
            limiter=limiter,
            validator=CredentialValidator(store, limiter),
            dispatcher=dispatcher,
            tracker=VisitTracker(store),
        )


def create_app(gateway: Optional[AgentGateway] = None) -> FastAPI:
    """Create FastAPI application with gateway endpoints."""
    from . import __version__ as gateway_version

    if gateway is None:
        gateway = AgentGateway.build()
    config = gateway.config

    app = FastAPI(
        title="LinkHub Agent Gateway",
        description="MCP (JSON-RPC 2.0) endpoint for LinkHub profiles",
        version=gateway_version,
    )
    app.state.gateway = gateway

    # Request body size limit (best-effort, checks Content-Length).
    max_request_bytes = config.max_request_bytes

    @app.middleware("http")
    async def _limit_request_size(req: Request, call_next):
        cl = req.headers.get("content-length")
        if cl is not None:
            try:
                too_large = int(cl) > max_request_bytes
            except ValueError:
                return JSONResponse(status_code=400, content={"detail": "BAD_CONTENT_LENGTH"})
            if too_large:
                return JSONResponse(status_code=413, content={"detail": "REQUEST_TOO_LARGE"})
        return await call_next(req)

    # ---------------------------
    # MCP endpoint
    # ---------------------------

    @app.post("/api/mcp/{username}")
    async def mcp_endpoint(username: str, request: Request, background_tasks: BackgroundTasks):
        body = await request.body()
        authorization = request.headers.get("authorization")

        authenticate = None
        if authorization is not None:
            def authenticate():
                return gateway.validator.validate(authorization, defer=background_tasks.add_task)

        outcome = gateway.dispatcher.dispatch(body, username, authenticate=authenticate)

        background_tasks.add_task(gateway.tracker.track, username, dict(request.headers), outcome.request)
        return JSONResponse(content=outcome.payload, status_code=outcome.http_status, headers=MCP_HEADERS)

    @app.options("/api/mcp/{username}")
    async def mcp_preflight(username: str):
        return Response(status_code=204, headers={**CORS_HEADERS, "Access-Control-Max-Age": PREFLIGHT_MAX_AGE})

    # ---------------------------
    # Discovery
    # ---------------------------

    @app.get("/.well-known/mcp.json")
    async def discovery():
        return JSONResponse(
            content=build_discovery_document(config.base_url),
            headers={"Cache-Control": DISCOVERY_CACHE_CONTROL, "Access-Control-Allow-Origin": "*"},
        )

    # ---------------------------
    # Operational stats (/v1/stats)
    # ---------------------------
    stats_token = config.stats_token

    def _authorize_stats(req: Request) -> bool:
        if not stats_token:
            return True
        authz = (req.headers.get("Authorization") or "").strip()
        if authz.lower().startswith("bearer "):
            if hmac.compare_digest(authz.split(" ", 1)[1].strip(), stats_token):
                return True
        return hmac.compare_digest((req.headers.get("X-Stats-Token") or "").strip(), stats_token)

    @app.get("/v1/stats")
    async def stats(http_request: Request):
        if not _authorize_stats(http_request):
            raise HTTPException(401, "STATS_UNAUTHORIZED")
        return OPS_STATS.snapshot(extra={"rate_limit_backend": config.rate_limit_backend})

    @app.get("/v1/health")
    async def health_check():
        """Health check endpoint."""
        return {"status": "healthy", "version": gateway_version}

    if config.metrics_enabled:
        instrument_fastapi(app, authorize=_authorize_stats)

    return app
