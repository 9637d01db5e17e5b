"""Response cache gate.

Read-only resources put their rendered JSON behind this gate. Entries are
keyed by request path plus sorted query string, carry tags so an external
actor can invalidate related entries in bulk, and expire after a
per-resource lifetime. The cache is an optimisation only: a failing store
degrades to a miss and never fails the request.
"""

from __future__ import annotations

import hashlib
import logging
import random
import time
from abc import ABC, abstractmethod
from collections.abc import Callable, Iterable
from dataclasses import dataclass
from datetime import datetime, timezone
from email.utils import formatdate, parsedate_to_datetime
from typing import Any
from urllib.parse import urlencode

from storefront.application.dto import ApiResponse, ResourceRequest, is_development
from storefront.domain.exceptions import CacheStoreError
from storefront.domain.model.record import is_truthy

logger = logging.getLogger(__name__)

KEY_PREFIX = "STOREFRONT_API_"
BYPASS_PARAM = "skipCache"


@dataclass(frozen=True)
class CacheEntry:
    key: str
    body: str
    tags: frozenset[str]
    last_modified: float
    expires_at: float

    @property
    def etag(self) -> str:
        return '"' + hashlib.md5(self.body.encode("utf-8")).hexdigest() + '"'


class CacheStore(ABC):

    @abstractmethod
    def exists(self, key: str) -> bool:
        """True if an unexpired entry is stored under ``key``."""

    @abstractmethod
    def get(self, key: str) -> CacheEntry | None:
        """Return the unexpired entry for ``key``, or None."""

    @abstractmethod
    def put(self, key: str, body: str, tags: frozenset[str], lifetime: int) -> bool:
        """Store an entry for ``lifetime`` seconds unless a live one exists.

        Returns True when this call stored the entry.
        """

    @abstractmethod
    def flush(self) -> None:
        """Drop every entry."""

    @abstractmethod
    def invalidate_tags(self, tags: Iterable[str]) -> int:
        """Drop every entry carrying any of ``tags``; return how many."""

    @abstractmethod
    def stats(self) -> dict[str, Any]:
        """Backend statistics for operators."""


def normalize_tags(tags: Iterable[str]) -> frozenset[str]:
    return frozenset(str(tag).upper() for tag in tags if tag)


class CacheGate:

    def __init__(
        self,
        store: CacheStore,
        environment: str = "dev",
        refresh_probability: float = 0.0,
        rng: Callable[[], float] = random.random,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._store = store
        self._environment = environment
        self._refresh_probability = refresh_probability
        self._rng = rng
        self._clock = clock

    @property
    def enabled(self) -> bool:
        return not is_development(self._environment)

    @staticmethod
    def key_for(request: ResourceRequest) -> str:
        path = request.path.rstrip("/") or "/"
        query = urlencode(sorted((str(k), str(v)) for k, v in request.query.items()))
        digest = hashlib.md5(f"{path}?{query}".encode("utf-8")).hexdigest()
        return KEY_PREFIX + digest

    def lookup(self, request: ResourceRequest) -> ApiResponse | None:
        """Return a cached (or 304) response, or None on a miss."""
        if not self.enabled or is_truthy(request.query.get(BYPASS_PARAM)):
            return None
        if self._refresh_probability and self._rng() < self._refresh_probability:
            logger.debug("Forcing cache refresh for %s", request.path)
            return None

        key = self.key_for(request)
        try:
            entry = self._store.get(key)
        except CacheStoreError as exc:
            logger.warning("Cache lookup failed for %s: %s", key, exc)
            return None

        if entry is None:
            return None

        remaining = int(entry.expires_at - self._clock())
        if remaining <= 0:
            return None

        headers = {
            "Cache-Control": f"max-age={remaining}",
            "ETag": entry.etag,
            "Last-Modified": formatdate(entry.last_modified, usegmt=True),
        }
        if self._not_modified(request, entry):
            return ApiResponse(status=304, headers=headers)
        return ApiResponse(status=200, body=entry.body, headers=headers)

    def store(
        self,
        request: ResourceRequest,
        body: str,
        tags: Iterable[str] = (),
        lifetime: int = 0,
    ) -> bool:
        """Add an entry unless one already exists; return True if stored."""
        if not self.enabled or lifetime <= 0:
            return False

        key = self.key_for(request)
        try:
            if self._store.exists(key):
                return False
            return self._store.put(key, body, normalize_tags(tags), lifetime)
        except CacheStoreError as exc:
            logger.warning("Cache store failed for %s: %s", key, exc)
            return False

    # --- Conditional GET ------------------------------------------------------

    @staticmethod
    def _not_modified(request: ResourceRequest, entry: CacheEntry) -> bool:
        if_none_match = request.header("If-None-Match")
        if if_none_match is not None:
            candidates = {tag.strip() for tag in if_none_match.split(",")}
            return "*" in candidates or entry.etag in candidates

        if_modified_since = request.header("If-Modified-Since")
        if if_modified_since:
            try:
                since = parsedate_to_datetime(if_modified_since)
            except (TypeError, ValueError):
                return False
            if since.tzinfo is None:
                since = since.replace(tzinfo=timezone.utc)
            modified = datetime.fromtimestamp(int(entry.last_modified), tz=timezone.utc)
            return modified <= since

        return False
