import threading

import pytest

from linkhub_gateway.config import GatewayConfig
from linkhub_gateway.ratelimit import InMemoryRateLimiter, RedisRateLimiter, build_rate_limiter_from_config


class _Clock:
    def __init__(self):
        self.now = 1000.0

    def __call__(self):
        return self.now


def test_quota_enforced_and_rejections_do_not_count():
    clock = _Clock()
    rl = InMemoryRateLimiter(window_seconds=60, clock=clock)

    assert all(rl.allow("k1", 3) for _ in range(3))
    assert rl.allow("k1", 3) is False
    assert rl.allow("k1", 3) is False
    assert rl.usage("k1") == 3

    # Keys are independent.
    assert rl.allow("k2", 3) is True


def test_window_resets_after_elapsed():
    clock = _Clock()
    rl = InMemoryRateLimiter(window_seconds=60, clock=clock)
    assert rl.allow("k", 1) is True
    assert rl.allow("k", 1) is False

    clock.now += 60
    assert rl.usage("k") == 0
    assert rl.allow("k", 1) is True


def test_concurrent_calls_never_exceed_quota():
    rl = InMemoryRateLimiter(window_seconds=3600)
    results = []
    lock = threading.Lock()

    def worker():
        for _ in range(25):
            ok = rl.allow("shared", 50)
            with lock:
                results.append(ok)

    threads = [threading.Thread(target=worker) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert sum(results) == 50


def test_key_table_is_bounded():
    clock = _Clock()
    rl = InMemoryRateLimiter(window_seconds=10, max_keys=2, clock=clock)
    assert rl.allow("a", 5) and rl.allow("b", 5)
    assert rl.allow("c", 5) is False

    # Expired windows are evicted to make room.
    clock.now += 10
    assert rl.allow("c", 5) is True


def test_eviction_skips_keys_with_a_call_in_flight():
    clock = _Clock()
    rl = InMemoryRateLimiter(window_seconds=10, max_keys=2, clock=clock)
    assert rl.allow("a", 5) and rl.allow("b", 5)
    clock.now += 10

    busy = rl._locks["a"]
    with busy:
        assert rl.allow("c", 5) is True
    assert rl._locks["a"] is busy
    assert "b" not in rl._locks


def test_call_retries_when_its_key_was_evicted_while_waiting():
    clock = _Clock()
    rl = InMemoryRateLimiter(window_seconds=10, clock=clock)
    assert rl.allow("a", 5)
    stale = rl._locks["a"]

    # Simulate eviction between lock lookup and acquisition.
    real_lock_for = rl._lock_for
    handed_out = []

    def lock_for(key_id):
        if not handed_out:
            handed_out.append(stale)
            rl._locks.pop(key_id)
            rl._windows.pop(key_id)
            return stale
        return real_lock_for(key_id)

    rl._lock_for = lock_for
    assert rl.allow("a", 5) is True
    assert rl._locks["a"] is not stale
    assert rl.usage("a") == 1


def test_eviction_tolerates_concurrent_inserts():
    rl = InMemoryRateLimiter(window_seconds=0.001, max_keys=64)
    errors = []

    def worker(n):
        try:
            for i in range(500):
                rl.allow(f"k{n}-{i % 200}", 5)
        except RuntimeError as e:
            errors.append(e)

    threads = [threading.Thread(target=worker, args=(n,)) for n in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()

    assert errors == []
    assert len(rl._locks) <= 64


def test_invalid_window_rejected():
    with pytest.raises(ValueError):
        InMemoryRateLimiter(window_seconds=0)


class _FakeRedis:
    def __init__(self):
        self.counts = {}
        self.expiries = {}

    def incr(self, key):
        self.counts[key] = self.counts.get(key, 0) + 1
        return self.counts[key]

    def expire(self, key, seconds):
        self.expiries[key] = seconds


def test_redis_limiter_uses_incr_and_sets_expiry_once():
    fake = _FakeRedis()
    rl = RedisRateLimiter(fake, window_seconds=3600)
    assert rl.allow("k", 2) is True
    assert rl.allow("k", 2) is True
    assert rl.allow("k", 2) is False

    (key,) = fake.counts.keys()
    assert key.startswith("linkhub:rl:k:")
    assert fake.expiries == {key: 3600}


def test_memory_backend_is_default():
    rl = build_rate_limiter_from_config(GatewayConfig())
    assert isinstance(rl, InMemoryRateLimiter)
