"""User-Agent based detection of AI agents.

Patterns are evaluated in order and the first match wins, so specific vendors
come before the generic bot/crawler catch-all.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import List, Optional, Pattern, Tuple

FALLBACK_IDENTIFIER = "mcp-client"
FALLBACK_NAME = "MCP Client"


@dataclass(frozen=True)
class AgentMatch:
    identifier: str
    name: str


AGENT_PATTERNS: List[Tuple[Pattern[str], str, str]] = [
    (re.compile(r"claude[-\s]?web|claudebot|anthropic[-\s]?ai", re.I), "claude", "Claude"),
    (re.compile(r"chatgpt[-\s]?user|gptbot|openai", re.I), "chatgpt", "ChatGPT"),
    (re.compile(r"perplexitybot|perplexity", re.I), "perplexity", "Perplexity"),
    (re.compile(r"google[-\s]?extended|googlebot[-\s]?ai|google[-\s]?other", re.I), "google-ai", "Google AI"),
    (re.compile(r"bingbot|bingpreview", re.I), "bing-ai", "Bing AI"),
    (re.compile(r"meta[-\s]?external|facebookexternalhit", re.I), "meta-ai", "Meta AI"),
    (re.compile(r"applebot[-\s]?extended", re.I), "apple-ai", "Apple AI"),
    (re.compile(r"cohere[-\s]?ai", re.I), "cohere", "Cohere"),
    (re.compile(r"bot(?!.*(?:google|bing|facebook|twitter))|crawler|spider|scraper", re.I), "generic-bot", "Bot"),
]


def detect_agent(user_agent: Optional[str]) -> Optional[AgentMatch]:
    """Return the first matching agent, or None for unrecognised clients."""
    if not user_agent:
        return None
    for pattern, identifier, name in AGENT_PATTERNS:
        if pattern.search(user_agent):
            return AgentMatch(identifier=identifier, name=name)
    return None


def identify_client(user_agent: Optional[str]) -> AgentMatch:
    return detect_agent(user_agent) or AgentMatch(FALLBACK_IDENTIFIER, FALLBACK_NAME)
