"""In-process CacheStore: a locked dict with expiry and a tag index."""

from __future__ import annotations

import threading
import time
from collections.abc import Callable, Iterable
from typing import Any

from storefront.application.cache_gate import CacheEntry, CacheStore, normalize_tags


class MemoryCacheStore(CacheStore):

    def __init__(self, clock: Callable[[], float] = time.time) -> None:
        self._clock = clock
        self._lock = threading.Lock()
        self._entries: dict[str, CacheEntry] = {}
        self._tags: dict[str, set[str]] = {}
        self._hits = 0
        self._misses = 0

    # --- CacheStore interface -------------------------------------------------

    def exists(self, key: str) -> bool:
        with self._lock:
            return self._live(key) is not None

    def get(self, key: str) -> CacheEntry | None:
        with self._lock:
            entry = self._live(key)
            if entry is None:
                self._misses += 1
            else:
                self._hits += 1
            return entry

    def put(self, key: str, body: str, tags: frozenset[str], lifetime: int) -> bool:
        now = self._clock()
        entry = CacheEntry(
            key=key,
            body=body,
            tags=frozenset(tags),
            last_modified=now,
            expires_at=now + lifetime,
        )
        with self._lock:
            self._sweep(now)
            if key in self._entries:
                return False
            self._entries[key] = entry
            for tag in entry.tags:
                self._tags.setdefault(tag, set()).add(key)
        return True

    def flush(self) -> None:
        with self._lock:
            self._entries.clear()
            self._tags.clear()

    def invalidate_tags(self, tags: Iterable[str]) -> int:
        removed = 0
        with self._lock:
            for tag in normalize_tags(tags):
                for key in list(self._tags.get(tag, ())):
                    if key in self._entries:
                        self._drop(key)
                        removed += 1
        return removed

    def stats(self) -> dict[str, Any]:
        with self._lock:
            now = self._clock()
            live = sum(1 for e in self._entries.values() if e.expires_at > now)
            return {
                "entries": live,
                "tags": len(self._tags),
                "hits": self._hits,
                "misses": self._misses,
            }

    # --- Internal helpers (lock held) -----------------------------------------

    def _live(self, key: str) -> CacheEntry | None:
        entry = self._entries.get(key)
        if entry is None:
            return None
        if entry.expires_at <= self._clock():
            self._drop(key)
            return None
        return entry

    def _sweep(self, now: float) -> None:
        for key in [k for k, e in self._entries.items() if e.expires_at <= now]:
            self._drop(key)

    def _drop(self, key: str) -> None:
        entry = self._entries.pop(key, None)
        if entry is None:
            return
        for tag in entry.tags:
            keys = self._tags.get(tag)
            if keys is not None:
                keys.discard(key)
                if not keys:
                    del self._tags[tag]
