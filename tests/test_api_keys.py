import re

import pytest

from linkhub_gateway.errors import ApiKeyError
from linkhub_gateway.keys import (
    DEFAULT_RATE_LIMIT,
    display_prefix,
    generate_api_key,
    has_key_format,
    hash_api_key,
)

from conftest import ALICE_ID, BOB_ID


def test_generated_key_shape_and_hash():
    raw = generate_api_key()
    assert re.fullmatch(r"lh_[0-9a-f]{32}", raw)
    assert has_key_format(raw)
    assert not has_key_format("sk_" + raw[3:])

    digest = hash_api_key(raw)
    assert re.fullmatch(r"[0-9a-f]{64}", digest)
    assert digest == hash_api_key(raw)
    assert digest != hash_api_key(generate_api_key())

    assert display_prefix(raw) == raw[:8] + "..."


def test_create_returns_secret_once_and_listing_hides_it(keys, seeded_store):
    created = keys.create(ALICE_ID, "  Agent key  ", permissions=["read", "inquire"], rate_limit=500)
    assert created.full_key.startswith("lh_")
    assert created.key.name == "Agent key"
    assert created.key.permissions == ("read", "inquire")
    assert created.key.rate_limit == 500

    # Only the digest is persisted.
    record = seeded_store.get_api_key_by_hash(hash_api_key(created.full_key))
    assert record is not None and record.id == created.key.id
    assert record.key_hash != created.full_key

    listing = keys.list(ALICE_ID)
    assert len(listing) == 1
    entry = listing[0]
    assert entry["key_prefix"] == created.full_key[:8] + "..."
    assert "key_hash" not in entry
    assert created.full_key not in repr(listing)


def test_create_filters_permissions_and_coerces_rate_limit(keys):
    created = keys.create(ALICE_ID, "k", permissions=["read", "admin", "read"], rate_limit=7)
    assert created.key.permissions == ("read",)
    assert created.key.rate_limit == DEFAULT_RATE_LIMIT

    default = keys.create(ALICE_ID, "k2")
    assert default.key.permissions == ("read",)


def test_create_rejects_missing_name_and_empty_permissions(keys):
    with pytest.raises(ApiKeyError, match="name is required"):
        keys.create(ALICE_ID, "   ")
    with pytest.raises(ApiKeyError, match="At least one permission"):
        keys.create(ALICE_ID, "k", permissions=["admin"])


def test_update_applies_valid_subset(keys):
    created = keys.create(ALICE_ID, "k")
    view = keys.update(ALICE_ID, created.key.id, permissions=["bogus", "inquire"], rate_limit=999)
    assert view["permissions"] == ["inquire"]
    assert view["rate_limit"] == DEFAULT_RATE_LIMIT

    with pytest.raises(ApiKeyError, match="No valid updates"):
        keys.update(ALICE_ID, created.key.id, permissions=["bogus"], rate_limit=3)


def test_keys_are_scoped_to_their_owner(keys):
    created = keys.create(ALICE_ID, "k")
    with pytest.raises(ApiKeyError, match="not found"):
        keys.revoke(BOB_ID, created.key.id)
    with pytest.raises(ApiKeyError, match="not found"):
        keys.delete(BOB_ID, created.key.id)
    assert keys.list(BOB_ID) == []

    assert keys.revoke(ALICE_ID, created.key.id)["is_active"] is False
    keys.delete(ALICE_ID, created.key.id)
    assert keys.list(ALICE_ID) == []
