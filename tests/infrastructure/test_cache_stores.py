"""Tests for the cache store backends."""

from unittest.mock import Mock

import pytest
import redis

from storefront.application.cache_gate import KEY_PREFIX
from storefront.domain.exceptions import CacheStoreError
from storefront.infrastructure.cache.memory_cache_store import MemoryCacheStore
from storefront.infrastructure.cache.redis_cache_store import TAG_PREFIX, RedisCacheStore


class TestMemoryCacheStore:

    def _store(self):
        now = [1000.0]
        return MemoryCacheStore(clock=lambda: now[0]), now

    def test_put_and_get(self):
        store, _ = self._store()
        store.put("k", "body", frozenset({"A"}), 60)
        entry = store.get("k")
        assert entry.body == "body"
        assert entry.expires_at == 1060.0
        assert store.exists("k")

    def test_first_writer_wins(self):
        store, now = self._store()
        assert store.put("k", "first", frozenset(), 60)
        assert not store.put("k", "second", frozenset(), 60)
        assert store.get("k").body == "first"

        now[0] += 60
        assert store.put("k", "third", frozenset(), 60)
        assert store.get("k").body == "third"

    def test_expiry(self):
        store, now = self._store()
        store.put("k", "body", frozenset(), 60)
        now[0] += 60
        assert store.get("k") is None
        assert not store.exists("k")

    def test_put_sweeps_expired_entries(self):
        store, now = self._store()
        for n in range(500):
            store.put(f"event?page={n}", "[]", frozenset({f"PAGE_{n}"}), 60)
        now[0] += 61
        store.put("fresh", "[]", frozenset({"FRESH"}), 60)

        assert store.stats()["tags"] == 1
        assert store.invalidate_tags([f"PAGE_{n}" for n in range(500)]) == 0

    def test_invalidate_tags(self):
        store, _ = self._store()
        store.put("a", "1", frozenset({"EVENT_5", "PRODUCT_1"}), 60)
        store.put("b", "2", frozenset({"EVENT_5"}), 60)
        store.put("c", "3", frozenset({"EVENT_6"}), 60)

        assert store.invalidate_tags(["event_5"]) == 2
        assert store.get("a") is None
        assert store.get("c").body == "3"
        assert store.invalidate_tags(["PRODUCT_1"]) == 0

    def test_flush_and_stats(self):
        store, _ = self._store()
        store.put("a", "1", frozenset({"T"}), 60)
        store.get("a")
        store.get("missing")
        assert store.stats() == {"entries": 1, "tags": 1, "hits": 1, "misses": 1}
        store.flush()
        assert store.stats()["entries"] == 0


class TestRedisCacheStore:

    def test_get_reads_hash(self):
        client = Mock(spec=redis.Redis)
        client.hgetall.return_value = {
            "body": "[]",
            "tags": "A,B",
            "last_modified": "1000.0",
            "expires_at": "1060.0",
        }
        entry = RedisCacheStore(client).get("k")
        assert entry.tags == frozenset({"A", "B"})
        assert entry.expires_at == 1060.0

    def test_missing_key(self):
        client = Mock(spec=redis.Redis)
        client.hgetall.return_value = {}
        assert RedisCacheStore(client).get("k") is None

    def test_put_indexes_tags(self):
        client = Mock(spec=redis.Redis)
        client.hsetnx.return_value = 1
        pipe = client.pipeline.return_value
        assert RedisCacheStore(client).put(KEY_PREFIX + "k", "[]", frozenset({"EVENT_5"}), 60)

        client.hsetnx.assert_called_once_with(KEY_PREFIX + "k", "body", "[]")
        pipe.expire.assert_called_once_with(KEY_PREFIX + "k", 60)
        pipe.sadd.assert_called_once_with(TAG_PREFIX + "EVENT_5", KEY_PREFIX + "k")
        pipe.execute.assert_called_once()

    def test_put_leaves_existing_entry(self):
        client = Mock(spec=redis.Redis)
        client.hsetnx.return_value = 0
        assert not RedisCacheStore(client).put(KEY_PREFIX + "k", "[]", frozenset({"EVENT_5"}), 60)
        client.pipeline.assert_not_called()

    def test_half_written_entry_is_a_miss(self):
        client = Mock(spec=redis.Redis)
        client.hgetall.return_value = {"body": "[]"}
        assert RedisCacheStore(client).get("k") is None

    def test_invalidate_tags(self):
        client = Mock(spec=redis.Redis)
        client.smembers.return_value = {"k1", "k2"}
        client.delete.return_value = 2
        assert RedisCacheStore(client).invalidate_tags(["event_5"]) == 2
        client.smembers.assert_called_once_with(TAG_PREFIX + "EVENT_5")

    def test_backend_errors_are_translated(self):
        client = Mock(spec=redis.Redis)
        client.hgetall.side_effect = redis.ConnectionError("down")
        with pytest.raises(CacheStoreError, match="down"):
            RedisCacheStore(client).get("k")
