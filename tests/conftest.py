import pytest

from linkhub_gateway.api_keys import ApiKeyManager
from linkhub_gateway.models import Link, Profile, Service, SocialEmbed
from linkhub_gateway.profiles import ProfileReader
from linkhub_gateway.ratelimit import InMemoryRateLimiter
from linkhub_gateway.store import GatewayStore

ALICE_ID = "profile-alice"
BOB_ID = "profile-bob"


def _alice() -> Profile:
    return Profile(
        id=ALICE_ID,
        username="alice",
        display_name="Alice Example",
        bio="Designer in Lisbon",
        avatar_url="/avatars/alice.png",
        is_premium=True,
        links=[
            Link(id="l2", title="Blog", url="https://alice.example/blog", icon="📝", position=2, click_count=5),
            Link(id="l1", title="Portfolio", url="https://alice.example", icon="🎨", position=1, click_count=42),
            Link(id="l3", title="Hidden", url="https://alice.example/old", icon="x", position=0, is_active=False),
        ],
        social_embeds=[
            SocialEmbed(id="s1", platform="github", embed_url="https://github.com/alice", position=1),
            SocialEmbed(id="s2", platform="twitter", embed_url="https://twitter.com/alice", position=0),
        ],
    )


def _alice_services():
    return [
        Service(id="svc-design", profile_id=ALICE_ID, title="Logo Design", description="Vector logo",
                category="freelance", pricing="fixed", price_amount=450, action_type="request_quote", position=0),
        Service(id="svc-call", profile_id=ALICE_ID, title="Consulting", category="consulting",
                pricing="hourly", price_amount=150, action_type="book_meeting", position=1),
        Service(id="svc-old", profile_id=ALICE_ID, title="Retired", pricing="free", position=2, is_active=False),
    ]


@pytest.fixture
def store(tmp_path):
    return GatewayStore(db_path=str(tmp_path / "gateway.db"))


@pytest.fixture
def seeded_store(store):
    store.save_profile(_alice())
    for svc in _alice_services():
        store.save_service(svc)
    store.save_profile(Profile(id=BOB_ID, username="bob", display_name="Bob"))
    store.save_service(Service(id="svc-bob", profile_id=BOB_ID, title="Bob's thing"))
    return store


@pytest.fixture
def reader(seeded_store):
    return ProfileReader(seeded_store)


@pytest.fixture
def limiter():
    return InMemoryRateLimiter(window_seconds=3600)


@pytest.fixture
def keys(seeded_store):
    return ApiKeyManager(seeded_store)
