"""Redis-backed CacheStore.

Each entry is a hash (``body``, ``tags``, ``last_modified``, ``expires_at``)
with a native expiry; each tag is a set of the keys carrying it.
"""

from __future__ import annotations

import logging
import time
from collections.abc import Iterable
from typing import Any

import redis

from storefront.application.cache_gate import KEY_PREFIX, CacheEntry, CacheStore, normalize_tags
from storefront.domain.exceptions import CacheStoreError

logger = logging.getLogger(__name__)

TAG_PREFIX = KEY_PREFIX + "TAG_"


class RedisCacheStore(CacheStore):

    def __init__(self, client: redis.Redis) -> None:
        self._client = client

    @classmethod
    def from_settings(
        cls,
        host: str,
        port: int,
        db: int = 0,
        password: str | None = None,
    ) -> RedisCacheStore:
        client = redis.Redis(
            host=host,
            port=port,
            db=db,
            password=password,
            decode_responses=True,
            socket_timeout=5.0,
            socket_connect_timeout=5.0,
        )
        logger.info("Using redis cache store at %s:%s/%s", host, port, db)
        return cls(client)

    # --- CacheStore interface -------------------------------------------------

    def exists(self, key: str) -> bool:
        try:
            return bool(self._client.exists(key))
        except redis.RedisError as exc:
            raise CacheStoreError(str(exc)) from exc

    def get(self, key: str) -> CacheEntry | None:
        try:
            raw = self._client.hgetall(key)
        except redis.RedisError as exc:
            raise CacheStoreError(str(exc)) from exc
        if not raw or "expires_at" not in raw:
            return None
        return CacheEntry(
            key=key,
            body=raw["body"],
            tags=frozenset(t for t in raw.get("tags", "").split(",") if t),
            last_modified=float(raw["last_modified"]),
            expires_at=float(raw["expires_at"]),
        )

    def put(self, key: str, body: str, tags: frozenset[str], lifetime: int) -> bool:
        now = time.time()
        try:
            # first writer wins
            if not self._client.hsetnx(key, "body", body):
                return False
            pipe = self._client.pipeline()
            pipe.hset(
                key,
                mapping={
                    "tags": ",".join(sorted(tags)),
                    "last_modified": now,
                    "expires_at": now + lifetime,
                },
            )
            pipe.expire(key, lifetime)
            for tag in tags:
                pipe.sadd(TAG_PREFIX + tag, key)
            pipe.execute()
        except redis.RedisError as exc:
            raise CacheStoreError(str(exc)) from exc
        return True

    def flush(self) -> None:
        try:
            keys = list(self._client.scan_iter(match=KEY_PREFIX + "*"))
            if keys:
                self._client.delete(*keys)
        except redis.RedisError as exc:
            raise CacheStoreError(str(exc)) from exc

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        removed = 0
        try:
            for tag in normalize_tags(tags):
                keys = list(self._client.smembers(TAG_PREFIX + tag))
                if keys:
                    removed += self._client.delete(*keys)
                self._client.delete(TAG_PREFIX + tag)
        except redis.RedisError as exc:
            raise CacheStoreError(str(exc)) from exc
        return removed

    def stats(self) -> dict[str, Any]:
        try:
            info = self._client.info("stats")
            entries = sum(
                1
                for key in self._client.scan_iter(match=KEY_PREFIX + "*")
                if not key.startswith(TAG_PREFIX)
            )
        except redis.RedisError as exc:
            raise CacheStoreError(str(exc)) from exc
        return {
            "entries": entries,
            "hits": info.get("keyspace_hits", 0),
            "misses": info.get("keyspace_misses", 0),
        }
