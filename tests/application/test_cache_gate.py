"""Unit tests for the response cache gate."""

from email.utils import formatdate

import pytest

from storefront.application.cache_gate import KEY_PREFIX, CacheGate
from storefront.application.dto import ResourceRequest
from storefront.infrastructure.cache.memory_cache_store import MemoryCacheStore
from tests.fakes import FailingCacheStore

T0 = 1_700_000_000.0


def _setup(environment: str = "prod", **kwargs) -> tuple[CacheGate, MemoryCacheStore, list[float]]:
    now = [T0]
    store = MemoryCacheStore(clock=lambda: now[0])
    gate = CacheGate(store, environment=environment, clock=lambda: now[0], **kwargs)
    return gate, store, now


def _request(path: str = "/event", **query) -> ResourceRequest:
    return ResourceRequest(path=path, query=query)


class TestKeys:

    def test_query_order_does_not_matter(self):
        a = CacheGate.key_for(_request("/event", when="current", page="2"))
        b = CacheGate.key_for(_request("/event", page="2", when="current"))
        assert a == b
        assert a.startswith(KEY_PREFIX)

    def test_trailing_slash_ignored(self):
        assert CacheGate.key_for(_request("/event/")) == CacheGate.key_for(_request("/event"))

    def test_different_query_different_key(self):
        assert CacheGate.key_for(_request(when="upcoming")) != CacheGate.key_for(_request(when="current"))


class TestLookup:

    def test_miss_then_hit(self):
        gate, _, now = _setup()
        assert gate.lookup(_request()) is None
        assert gate.store(_request(), '{"a": 1}', ["category_event"], 3600)

        now[0] += 100
        hit = gate.lookup(_request())
        assert hit.status == 200
        assert hit.body == '{"a": 1}'
        assert hit.headers["Cache-Control"] == "max-age=3500"
        assert hit.headers["Last-Modified"] == formatdate(T0, usegmt=True)

    def test_expired_entry_is_a_miss(self):
        gate, _, now = _setup()
        gate.store(_request(), "[]", (), 60)
        now[0] += 61
        assert gate.lookup(_request()) is None

    @pytest.mark.parametrize("environment", ["dev", "DEV", "Development", " dev "])
    def test_disabled_in_dev(self, environment):
        gate, store, _ = _setup(environment=environment)
        assert not gate.enabled
        assert not gate.store(_request(), "[]", (), 3600)
        assert store.stats()["entries"] == 0
        assert gate.lookup(_request()) is None

    def test_skip_cache_parameter_bypasses_lookup(self):
        gate, _, _ = _setup()
        gate.store(_request(), "[]", (), 3600)
        assert gate.lookup(_request(skipCache="1")) is None

    def test_forced_refresh(self):
        gate, _, _ = _setup(refresh_probability=0.5, rng=lambda: 0.1)
        gate.store(_request(), "[]", (), 3600)
        assert gate.lookup(_request()) is None


class TestStore:

    def test_first_writer_wins(self):
        gate, _, _ = _setup()
        assert gate.store(_request(), "first", (), 3600)
        assert not gate.store(_request(), "second", (), 3600)
        assert gate.lookup(_request()).body == "first"

    def test_zero_lifetime_not_stored(self):
        gate, _, _ = _setup()
        assert not gate.store(_request(), "[]", (), 0)

    def test_tags_are_uppercased_for_invalidation(self):
        gate, store, _ = _setup()
        gate.store(_request(), "[]", ["catalog_category_5"], 3600)
        assert store.invalidate_tags(["CATALOG_CATEGORY_5"]) == 1
        assert gate.lookup(_request()) is None


class TestConditionalGet:

    def _stored(self):
        gate, _, _ = _setup()
        gate.store(_request(), '{"a": 1}', (), 3600)
        return gate, gate.lookup(_request()).headers["ETag"]

    def test_matching_etag_is_not_modified(self):
        gate, etag = self._stored()
        request = ResourceRequest(path="/event", headers={"If-None-Match": etag})
        response = gate.lookup(request)
        assert response.status == 304
        assert response.body is None

    def test_stale_etag_gets_body(self):
        gate, _ = self._stored()
        request = ResourceRequest(path="/event", headers={"if-none-match": '"nope"'})
        assert gate.lookup(request).status == 200

    def test_if_modified_since(self):
        gate, _ = self._stored()
        request = ResourceRequest(
            path="/event", headers={"If-Modified-Since": formatdate(T0 + 10, usegmt=True)}
        )
        assert gate.lookup(request).status == 304


class TestFailingStore:

    def test_errors_degrade_to_miss(self):
        gate = CacheGate(FailingCacheStore(), environment="prod")
        assert gate.lookup(_request()) is None
        assert gate.store(_request(), "[]", (), 3600) is False
