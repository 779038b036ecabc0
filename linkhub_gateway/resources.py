"""Read-only resources addressed as ``linkhub://{username}/{kind}``."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, List

from .errors import ResourceNotFound
from .profiles import ProfileReader, ProfileSnapshot, link_views, service_views, social_views
from .tools import format_links_text, format_services_text

URI_SCHEME = "linkhub"
MIME_TYPE = "text/plain"

_URI_RE = re.compile(r"^linkhub://([^/]+)/(.+)$")


def _profile_text(snap: ProfileSnapshot) -> str:
    s = snap.summary()
    return "\n".join([
        s["display_name"],
        f"@{snap.profile.username}",
        "",
        snap.profile.bio or "(No bio)",
        "",
        f"Avatar: {s['avatar_url'] or 'None'}",
        f"Verified: {'Yes' if s['verified'] else 'No'}",
        "",
        "Stats:",
        f"  Links: {s['stats']['links']}",
        f"  Social accounts: {s['stats']['social_accounts']}",
        f"  Services: {s['stats']['services']}",
        "",
        f"Web: {snap.web_url}",
        f"API: {snap.base_url}/api/profiles/{snap.profile.username}",
    ])


def _links_text(snap: ProfileSnapshot) -> str:
    return format_links_text(snap.profile.username, link_views(snap.profile), markdown=False)


def _services_text(snap: ProfileSnapshot) -> str:
    return format_services_text(snap.profile.username, service_views(snap.services), markdown=False)


def _social_text(snap: ProfileSnapshot) -> str:
    socials = social_views(snap.profile)
    if not socials:
        return "No social accounts connected."
    lines = [f"{i}. {s['platform']}: {s['url']}" for i, s in enumerate(socials, start=1)]
    return f"Social media for @{snap.profile.username}\n\n" + "\n".join(lines)


@dataclass(frozen=True)
class ResourceDefinition:
    kind: str
    name_template: str
    description: str
    render: Callable[[ProfileSnapshot], str]
    mime_type: str = MIME_TYPE

    @property
    def uri_template(self) -> str:
        return f"{URI_SCHEME}://{{username}}/{self.kind}"

    def listing(self, username: str) -> Dict[str, Any]:
        return {
            "uri": self.uri_template.format(username=username),
            "name": self.name_template.format(username=username),
            "description": self.description,
            "mimeType": self.mime_type,
        }


RESOURCES: Dict[str, ResourceDefinition] = {
    r.kind: r
    for r in [
        ResourceDefinition(
            kind="profile",
            name_template="{username}'s profile",
            description="Overview of this user including display name, bio, avatar and summary statistics.",
            render=_profile_text,
        ),
        ResourceDefinition(
            kind="links",
            name_template="{username}'s links",
            description="All active links on this profile, with titles, URLs and click counts.",
            render=_links_text,
        ),
        ResourceDefinition(
            kind="services",
            name_template="{username}'s services",
            description="Available services offered by this user, with pricing and action types.",
            render=_services_text,
        ),
        ResourceDefinition(
            kind="social",
            name_template="{username}'s social media",
            description="Social media links and platforms connected to this profile.",
            render=_social_text,
        ),
    ]
}


def list_resources(username: str) -> List[Dict[str, Any]]:
    return [r.listing(username) for r in RESOURCES.values()]


class ResourceResolver:
    def __init__(self, reader: ProfileReader):
        self.reader = reader

    def resolve(self, uri: str, username: str) -> Dict[str, Any]:
        """Read one resource; raises ResourceNotFound for anything unresolvable."""
        m = _URI_RE.match(uri)
        if not m or m.group(1) != username:
            raise ResourceNotFound(uri)
        resource = RESOURCES.get(m.group(2))
        if resource is None:
            raise ResourceNotFound(uri)
        snap = self.reader.load(username)
        if snap is None:
            raise ResourceNotFound(uri)
        return {"contents": [{"uri": uri, "mimeType": resource.mime_type, "text": resource.render(snap)}]}
