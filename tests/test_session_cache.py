import pytest

from plan_scaffold.session_cache import SessionCache


class Clock:
    def __init__(self):
        self.now = 0.0

    def __call__(self):
        return self.now


def test_get_is_not_destructive():
    """Test a stored archive can be fetched repeatedly."""
    cache = SessionCache(ttl_s=60, max_entries=4, clock=Clock())
    cache.put("s1", b"zip")
    assert cache.get("s1") == b"zip"
    assert cache.get("s1") == b"zip"
    assert "s1" in cache
    assert cache.get("missing") is None


def test_entries_expire_after_ttl():
    """Test an entry is gone once its age reaches the TTL."""
    clock = Clock()
    cache = SessionCache(ttl_s=3600, max_entries=4, clock=clock)
    cache.put("s1", b"zip")
    clock.now = 3599.9
    assert cache.get("s1") == b"zip"
    clock.now = 3600.0
    assert cache.get("s1") is None
    assert len(cache) == 0


def test_least_recently_used_is_evicted():
    """Test the capacity bound evicts the stalest entry."""
    cache = SessionCache(ttl_s=60, max_entries=2, clock=Clock())
    cache.put("a", b"1")
    cache.put("b", b"2")
    assert cache.get("a") == b"1"
    cache.put("c", b"3")
    assert cache.get("b") is None
    assert cache.get("a") == b"1"
    assert cache.get("c") == b"3"


def test_purge_and_evict():
    """Test explicit removal and purging of expired entries."""
    clock = Clock()
    cache = SessionCache(ttl_s=10, max_entries=8, clock=clock)
    cache.put("old", b"1")
    clock.now = 5
    cache.put("new", b"2")
    clock.now = 12
    assert cache.purge() == 1
    assert len(cache) == 1
    assert cache.evict("new") is True
    assert cache.evict("new") is False


def test_env_defaults(monkeypatch):
    """Test TTL and capacity fall back to the environment."""
    monkeypatch.setenv("SESSION_TTL_S", "120")
    monkeypatch.setenv("SESSION_MAX_ENTRIES", "3")
    cache = SessionCache()
    assert cache.ttl_s == 120
    assert cache.max_entries == 3
    monkeypatch.setenv("SESSION_TTL_S", "nonsense")
    assert SessionCache().ttl_s == 3600


def test_invalid_capacity():
    """Test a zero capacity is rejected."""
    with pytest.raises(ValueError):
        SessionCache(max_entries=0)
