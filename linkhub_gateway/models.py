"""Records the gateway reads from and writes to its storage collaborator."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class Link:
    id: str
    title: str
    url: str
    icon: str = ""
    position: int = 0
    is_active: bool = True
    click_count: int = 0


@dataclass
class SocialEmbed:
    id: str
    platform: str
    embed_url: str
    position: int = 0
    is_active: bool = True


@dataclass
class Service:
    id: str
    profile_id: str
    title: str
    description: Optional[str] = None
    category: str = "other"
    pricing: str = "contact"  # free | fixed | hourly | custom | contact
    price_amount: Optional[float] = None
    price_currency: str = "USD"
    action_type: str = "contact_form"
    position: int = 0
    is_active: bool = True


@dataclass
class Profile:
    id: str
    username: str
    display_name: Optional[str] = None
    bio: Optional[str] = None
    avatar_url: Optional[str] = None
    is_premium: bool = False
    links: List[Link] = field(default_factory=list)
    social_embeds: List[SocialEmbed] = field(default_factory=list)


@dataclass
class ApiKeyRecord:
    """Persisted credential. Holds the digest of the secret, never the secret."""

    id: str
    profile_id: str
    name: str
    key_hash: str
    key_prefix: str
    permissions: Tuple[str, ...]
    rate_limit: int
    is_active: bool
    created_at: str
    last_used_at: Optional[str] = None

    def public_view(self) -> dict:
        """Owner-facing listing shape (no hash, no secret)."""
        return {
            "id": self.id,
            "name": self.name,
            "key_prefix": self.key_prefix,
            "permissions": list(self.permissions),
            "rate_limit": self.rate_limit,
            "is_active": self.is_active,
            "last_used_at": self.last_used_at,
            "created_at": self.created_at,
        }


@dataclass
class ServiceInquiry:
    id: str
    service_id: str
    profile_id: str
    sender_name: str
    sender_email: str
    message: str
    source: str
    agent_identifier: Optional[str]
    created_at: str


@dataclass
class AgentVisit:
    profile_id: str
    agent_identifier: str
    agent_name: str
    user_agent: str
    endpoint: str
    method: str
    country: Optional[str] = None
    created_at: Optional[str] = None
