"""In-memory demo profile served under the reserved ``demo`` username.

The demo never touches storage: reads come from these records and
transactional tools acknowledge without writing.
"""

from __future__ import annotations

from typing import List

from .models import Link, Profile, Service, SocialEmbed

DEMO_USERNAME = "demo"
DEMO_PROFILE_ID = "demo-profile-001"


def _links() -> List[Link]:
    return [
        Link(id="demo-link-1", title="Latest Project Launch", url="https://example.com/launch",
             icon="🚀", position=0, click_count=48200),
        Link(id="demo-link-2", title="Portfolio", url="https://example.com/portfolio",
             icon="🎨", position=1, click_count=35800),
        Link(id="demo-link-3", title="Newsletter", url="https://example.com/newsletter",
             icon="📬", position=2, click_count=12400),
        Link(id="demo-link-4", title="Old Blog", url="https://example.com/blog",
             icon="📝", position=3, is_active=False, click_count=310),
    ]


def _socials() -> List[SocialEmbed]:
    return [
        SocialEmbed(id="demo-social-1", platform="github", embed_url="https://github.com/linkhub-demo", position=0),
        SocialEmbed(id="demo-social-2", platform="twitter", embed_url="https://twitter.com/linkhub_demo", position=1),
        SocialEmbed(id="demo-social-3", platform="linkedin", embed_url="https://www.linkedin.com/in/linkhub-demo/",
                    position=2),
    ]


def demo_profile() -> Profile:
    """Return a fresh copy so callers can never mutate shared demo state."""
    return Profile(
        id=DEMO_PROFILE_ID,
        username=DEMO_USERNAME,
        display_name="Demo Creator",
        bio="Builder, designer and occasional speaker. This profile shows what agents can see.",
        avatar_url="/demo/avatar.png",
        is_premium=True,
        links=_links(),
        social_embeds=_socials(),
    )


def demo_services() -> List[Service]:
    return [
        Service(
            id="demo-service-1",
            profile_id=DEMO_PROFILE_ID,
            title="Strategy Consultation",
            description="One-hour session on product strategy and AI adoption.",
            category="consulting",
            pricing="hourly",
            price_amount=150,
            action_type="book_meeting",
            position=0,
        ),
        Service(
            id="demo-service-2",
            profile_id=DEMO_PROFILE_ID,
            title="Landing Page Design",
            description="A complete landing page, delivered in two weeks.",
            category="freelance",
            pricing="fixed",
            price_amount=450,
            action_type="request_quote",
            position=1,
        ),
        Service(
            id="demo-service-3",
            profile_id=DEMO_PROFILE_ID,
            title="Speaking Engagements",
            description=None,
            category="event",
            pricing="contact",
            action_type="contact_form",
            position=2,
        ),
    ]


def is_demo(username: str) -> bool:
    return username == DEMO_USERNAME
