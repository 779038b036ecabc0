from linkhub_gateway.auth import (
    MSG_DEACTIVATED,
    MSG_INVALID_FORMAT,
    MSG_INVALID_KEY,
    MSG_MISSING_HEADER,
    MSG_RATE_LIMITED,
    CredentialValidator,
)
from linkhub_gateway.ratelimit import InMemoryRateLimiter

from conftest import ALICE_ID


def test_header_must_be_bearer(seeded_store, limiter):
    v = CredentialValidator(seeded_store, limiter)
    for header in (None, "", "Basic abc", "bearer lh_abc", "Token lh_abc"):
        result = v.validate(header)
        assert result.valid is False
        assert result.error == MSG_MISSING_HEADER


def test_prefix_is_a_format_check_only(seeded_store, limiter):
    v = CredentialValidator(seeded_store, limiter)
    assert v.validate("Bearer sk_123").error == MSG_INVALID_FORMAT
    assert v.validate("Bearer lh_notarealkey").error == MSG_INVALID_KEY


def test_valid_key_resolves_owner_and_permissions(seeded_store, limiter, keys):
    created = keys.create(ALICE_ID, "agent", permissions=["read", "inquire"])
    v = CredentialValidator(seeded_store, limiter)

    result = v.validate(f"Bearer {created.full_key}")
    assert result.valid is True
    assert result.profile_id == ALICE_ID
    assert result.username == "alice"
    assert result.key_id == created.key.id
    assert result.permissions == frozenset({"read", "inquire"})
    assert result.has_permission("inquire")
    assert not result.has_permission("write")


def test_deactivated_key_rejected(seeded_store, limiter, keys):
    created = keys.create(ALICE_ID, "agent")
    keys.revoke(ALICE_ID, created.key.id)
    result = CredentialValidator(seeded_store, limiter).validate(f"Bearer {created.full_key}")
    assert result.valid is False
    assert result.error == MSG_DEACTIVATED


def test_rate_limit_uses_key_quota(seeded_store, keys):
    created = keys.create(ALICE_ID, "agent", rate_limit=50)
    v = CredentialValidator(seeded_store, InMemoryRateLimiter(window_seconds=3600))
    header = f"Bearer {created.full_key}"

    assert all(v.validate(header).valid for _ in range(50))
    result = v.validate(header)
    assert result.valid is False
    assert result.error == MSG_RATE_LIMITED


def test_last_used_touch_is_deferred(seeded_store, limiter, keys):
    created = keys.create(ALICE_ID, "agent")
    deferred = []
    v = CredentialValidator(seeded_store, limiter)

    v.validate(f"Bearer {created.full_key}", defer=lambda fn, *a: deferred.append((fn, a)))
    assert seeded_store.get_api_key(ALICE_ID, created.key.id).last_used_at is None

    assert len(deferred) == 1
    fn, args = deferred[0]
    fn(*args)
    assert seeded_store.get_api_key(ALICE_ID, created.key.id).last_used_at is not None


def test_touch_failure_is_not_raised(seeded_store, limiter, keys, monkeypatch):
    created = keys.create(ALICE_ID, "agent")

    def boom(*a, **kw):
        raise RuntimeError("db down")

    monkeypatch.setattr(seeded_store, "touch_api_key", boom)
    result = CredentialValidator(seeded_store, limiter).validate(f"Bearer {created.full_key}")
    assert result.valid is True
