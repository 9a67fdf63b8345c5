"""Tests for the Redis-backed sweet detail cache."""
import uuid

import pytest
import redis

from sweetshop.errors import NotFound
from sweetshop.utils.cache import CacheService, cache_service


class FakePipeline:
    """Buffers commands and applies them on execute, honouring WATCH like a MULTI/EXEC."""

    def __init__(self, server):
        self.server = server
        self.watched = {}
        self.commands = []

    def watch(self, *keys):
        for key in keys:
            self.watched[key] = self.server.store.get(key)

    def multi(self):
        pass

    def setex(self, key, ttl, value):
        self.commands.append(lambda: self.server.setex(key, ttl, value))

    def incr(self, key):
        self.commands.append(lambda: self.server.incr(key))

    def expire(self, key, ttl):
        self.commands.append(lambda: None)

    def delete(self, key):
        self.commands.append(lambda: self.server.delete(key))

    def execute(self):
        try:
            if any(self.server.store.get(key) != value for key, value in self.watched.items()):
                raise redis.WatchError("Watched variable changed.")
            return [command() for command in self.commands]
        finally:
            self.reset()

    def reset(self):
        self.watched = {}
        self.commands = []


class FakeRedis:
    """In-memory stand-in for the handful of Redis commands the cache uses."""

    def __init__(self):
        self.store = {}

    def get(self, key):
        return self.store.get(key)

    def setex(self, key, ttl, value):
        self.store[key] = value

    def incr(self, key):
        self.store[key] = str(int(self.store.get(key, 0)) + 1)
        return int(self.store[key])

    def delete(self, key):
        self.store.pop(key, None)

    def pipeline(self):
        return FakePipeline(self)

    def ping(self):
        return True


@pytest.fixture
def fake_redis(monkeypatch):
    fake = FakeRedis()
    monkeypatch.setattr(cache_service, "client", fake)
    return fake


def test_sweet_detail_is_cached(client, create_sweet, user_headers, fake_redis):
    sweet = create_sweet(name="Butterscotch")

    first = client.get(f"/api/sweets/{sweet['id']}", headers=user_headers)

    assert first.status_code == 200
    assert f"sweet:{sweet['id']}" in fake_redis.store


@pytest.mark.parametrize("action", ["purchase", "restock", "update", "delete"])
def test_mutations_invalidate_cache(client, create_sweet, admin_headers, user_headers, fake_redis, action):
    sweet = create_sweet(name="Liquorice", quantity=10)
    client.get(f"/api/sweets/{sweet['id']}", headers=user_headers)
    key = f"sweet:{sweet['id']}"
    assert key in fake_redis.store

    if action == "purchase":
        client.post(f"/api/sweets/{sweet['id']}/purchase", json={"quantity": 1}, headers=user_headers)
    elif action == "restock":
        client.post(f"/api/sweets/{sweet['id']}/restock", json={"quantity": 1}, headers=admin_headers)
    elif action == "update":
        client.put(f"/api/sweets/{sweet['id']}", json={"price": "9.00"}, headers=admin_headers)
    else:
        client.delete(f"/api/sweets/{sweet['id']}", headers=admin_headers)

    assert key not in fake_redis.store


def test_stock_read_after_purchase_is_fresh(client, create_sweet, user_headers, fake_redis):
    sweet = create_sweet(name="Honeycomb", quantity=10)
    client.get(f"/api/sweets/{sweet['id']}", headers=user_headers)

    client.post(f"/api/sweets/{sweet['id']}/purchase", json={"quantity": 4}, headers=user_headers)
    response = client.get(f"/api/sweets/{sweet['id']}", headers=user_headers)

    assert response.json()["sweet"]["quantity"] == 6


def test_invalidate_during_load_skips_the_write(fake_redis):
    def load_then_race():
        value = {"quantity": 10}
        # a writer commits and invalidates while this read is still in flight
        cache_service.invalidate("sweet", "race")
        return value

    assert cache_service.get_or_load("sweet", "race", load_then_race) == {"quantity": 10}
    assert "sweet:race" not in fake_redis.store

    assert cache_service.get_or_load("sweet", "race", lambda: {"quantity": 6}) == {"quantity": 6}
    assert cache_service.get("sweet", "race") == {"quantity": 6}


def test_loader_errors_propagate_and_cache_nothing(fake_redis):
    def missing():
        raise NotFound("gone")

    with pytest.raises(NotFound):
        cache_service.get_or_load("sweet", "gone", missing)
    assert "sweet:gone" not in fake_redis.store


def test_unknown_sweet_is_not_found_with_cache_online(client, user_headers, fake_redis):
    missing_id = uuid.uuid4()

    response = client.get(f"/api/sweets/{missing_id}", headers=user_headers)

    assert response.status_code == 404
    assert f"sweet:{missing_id}" not in fake_redis.store


def test_unreachable_redis_degrades_to_miss():
    # conftest installs a client that fails every command
    cache = CacheService(client=cache_service.client)

    assert cache.get("sweet", "missing") is None
    assert cache.get_or_load("sweet", "missing", lambda: {"a": 1}) == {"a": 1}
    assert cache.invalidate("sweet", "missing") is False
    assert cache.ping() is False
