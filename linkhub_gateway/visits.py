"""Best-effort recording of agent visits to the gateway endpoint."""

from __future__ import annotations

import logging
from typing import Any, Mapping, Optional

from .agents import identify_client
from .demo import is_demo
from .models import AgentVisit
from .ops_stats import OPS_STATS
from .store import ProfileStore

logger = logging.getLogger("linkhub_gateway.visits")

MAX_USER_AGENT_CHARS = 500
COUNTRY_HEADERS = ("x-vercel-ip-country", "cf-ipcountry")


def _rpc_method(parsed_body: Any) -> str:
    if isinstance(parsed_body, dict):
        method = parsed_body.get("method")
        if isinstance(method, str) and method:
            return f"MCP:{method}"
    return "MCP:unknown"


class VisitTracker:
    """Appends one AgentVisit per gateway request. Never raises."""

    def __init__(self, store: ProfileStore):
        self.store = store

    def track(self, username: str, headers: Mapping[str, str], parsed_body: Any = None) -> Optional[AgentVisit]:
        if is_demo(username):
            return None
        try:
            profile_id = self.store.get_profile_id(username)
            if profile_id is None:
                return None

            user_agent = headers.get("user-agent") or ""
            client = identify_client(user_agent)
            country = next((headers.get(h) for h in COUNTRY_HEADERS if headers.get(h)), None)
            visit = AgentVisit(
                profile_id=profile_id,
                agent_identifier=client.identifier,
                agent_name=client.name,
                user_agent=user_agent[:MAX_USER_AGENT_CHARS],
                endpoint=f"/api/mcp/{username}",
                method=_rpc_method(parsed_body),
                country=country,
            )
            self.store.insert_visit(visit)
        except Exception:
            # Tracking must never affect the response.
            logger.debug("visit tracking failed for username=%s", username, exc_info=True)
            OPS_STATS.record_visit(ok=False)
            return None
        OPS_STATS.record_visit(ok=True)
        return visit
