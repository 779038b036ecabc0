"""Public projections of profile data shared by tools and resources.

Both the ``list_links`` tool and the ``links`` resource are built from
:func:`link_views` so the two surfaces can never disagree.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional

from .config import DEFAULT_BASE_URL
from .demo import demo_profile, demo_services, is_demo
from .models import Link, Profile, Service, SocialEmbed
from .store import ProfileStore

_CURRENCY_SYMBOLS = {"USD": "$", "EUR": "€", "GBP": "£", "ILS": "₪"}


def _format_amount(amount: float, currency: str) -> str:
    symbol = _CURRENCY_SYMBOLS.get((currency or "").upper())
    number = f"{amount:,.0f}" if float(amount).is_integer() else f"{amount:,.2f}"
    if symbol:
        return f"{symbol}{number}"
    return f"{number} {currency}".strip()


def format_price(pricing: str, amount: Optional[float], currency: str = "USD") -> str:
    """Human-readable price label, e.g. ``$150/hr`` or ``Contact for pricing``."""
    if pricing == "free":
        return "Free"
    if pricing == "fixed" and amount is not None:
        return _format_amount(amount, currency)
    if pricing == "hourly" and amount is not None:
        return f"{_format_amount(amount, currency)}/hr"
    if pricing == "custom":
        return "Custom pricing"
    return "Contact for pricing"


def resolve_avatar_url(avatar_url: Optional[str], base_url: str = DEFAULT_BASE_URL) -> Optional[str]:
    if not avatar_url:
        return None
    if avatar_url.startswith("http"):
        return avatar_url
    return f"{base_url}{avatar_url}"


def active_links(profile: Profile) -> List[Link]:
    return sorted((l for l in profile.links if l.is_active), key=lambda l: l.position)


def active_socials(profile: Profile) -> List[SocialEmbed]:
    return sorted((s for s in profile.social_embeds if s.is_active), key=lambda s: s.position)


def link_views(profile: Profile) -> List[Dict[str, Any]]:
    return [
        {"title": l.title, "url": l.url, "icon": l.icon, "click_count": l.click_count}
        for l in active_links(profile)
    ]


def service_views(services: List[Service]) -> List[Dict[str, Any]]:
    return [
        {
            "id": s.id,
            "title": s.title,
            "description": s.description,
            "category": s.category,
            "price": format_price(s.pricing, s.price_amount, s.price_currency),
            "action_type": s.action_type,
        }
        for s in sorted((s for s in services if s.is_active), key=lambda s: s.position)
    ]


def social_views(profile: Profile) -> List[Dict[str, Any]]:
    return [{"platform": s.platform, "url": s.embed_url} for s in active_socials(profile)]


@dataclass
class ProfileSnapshot:
    """Everything an agent may read about one profile."""

    profile: Profile
    services: List[Service]
    base_url: str = DEFAULT_BASE_URL

    @property
    def web_url(self) -> str:
        return f"{self.base_url}/{self.profile.username}"

    def summary(self) -> Dict[str, Any]:
        p = self.profile
        return {
            "username": p.username,
            "display_name": p.display_name or p.username,
            "bio": p.bio,
            "avatar_url": resolve_avatar_url(p.avatar_url, self.base_url),
            "verified": bool(p.is_premium),
            "stats": {
                "links": len(active_links(p)),
                "social_accounts": len(active_socials(p)),
                "services": len(service_views(self.services)),
            },
            "web_url": self.web_url,
        }


class ProfileReader:
    """Loads snapshots from the store, or the in-memory demo for ``demo``."""

    def __init__(self, store: ProfileStore, base_url: str = DEFAULT_BASE_URL):
        self.store = store
        self.base_url = base_url

    def load(self, username: str) -> Optional[ProfileSnapshot]:
        if is_demo(username):
            return ProfileSnapshot(demo_profile(), demo_services(), self.base_url)
        profile = self.store.get_profile(username)
        if profile is None:
            return None
        return ProfileSnapshot(profile, self.store.list_active_services(profile.id), self.base_url)
