"""Shared machinery for resource controllers.

Every resource follows the same lifecycle: authorize the caller, load the
domain records, consult the response cache, project records into their
public representation, store the rendered body and respond. The helpers
below implement each step once; subclasses declare their ``fields``,
``links`` and ``cache_lifetime`` and compose the steps.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from storefront.application.cache_gate import CacheGate
from storefront.application.dto import ApiConfig, ApiResponse, ResourceRequest, to_json
from storefront.application.errors import (
    AuthorizationError,
    ClientInputError,
    NotFoundError,
    UpstreamError,
)
from storefront.application.projection import (
    Alias,
    FieldSpec,
    LinkSpec,
    Projector,
)
from storefront.application.routes import Router
from storefront.domain.exceptions import DomainException, ValidationError
from storefront.domain.model.record import Record, record_id
from storefront.domain.repository.record_repository import Filters, RecordRepository
from storefront.domain.repository.session_repository import SessionRepository

logger = logging.getLogger(__name__)

REL = "http://rel.totsy.com"


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class ResourceContext:
    """Everything a resource needs besides its own repositories."""

    projector: Projector
    router: Router
    cache: CacheGate
    config: ApiConfig
    sessions: SessionRepository
    customers: RecordRepository
    clock: Callable[[], datetime] = field(default=utcnow)


def parse_id(raw: Any) -> int:
    """Path ids that are not integers name nothing, hence 404."""
    try:
        return int(str(raw).strip())
    except (TypeError, ValueError):
        raise NotFoundError() from None


def entity_id_from_url(url: Any) -> int:
    """Return the integer id at the end of a resource URL."""
    if not isinstance(url, str) or "/" not in url:
        raise ClientInputError(f"Invalid Resource URL {url}")
    tail = url.rstrip("/").rsplit("/", 1)[-1]
    try:
        return int(tail)
    except ValueError:
        raise ClientInputError(f"Invalid Resource URL {url}") from None


def first_href(entry: Any) -> str:
    """The href of the first link in a ``{"links": [...]}`` reference."""
    try:
        href = entry["links"][0]["href"]
    except (KeyError, IndexError, TypeError):
        raise ClientInputError("Missing resource link in request body") from None
    if not isinstance(href, str):
        raise ClientInputError(f"Invalid Resource URL {href}")
    return href


def unalias(data: dict[str, Any], field_spec: FieldSpec) -> dict[str, Any]:
    """Rewrite aliased output keys in incoming data to their source keys."""
    rewritten = dict(data)
    for rule in field_spec:
        if isinstance(rule, Alias) and rule.output in rewritten:
            rewritten[rule.source] = rewritten.pop(rule.output)
    return rewritten


class Resource:
    """Base class for resource controllers."""

    fields: FieldSpec = ()
    links: LinkSpec = ()
    cache_lifetime = 0

    def __init__(self, context: ResourceContext, repository: RecordRepository | None = None) -> None:
        self._ctx = context
        self._repository = repository

    # --- Projection -----------------------------------------------------------

    def _format(
        self,
        record: Record | None,
        fields: FieldSpec | None = None,
        links: LinkSpec | None = None,
    ) -> dict[str, Any]:
        return self._ctx.projector.project(
            record,
            self.fields if fields is None else fields,
            self.links if links is None else links,
        )

    # --- Authorization --------------------------------------------------------

    def _authorize(self, request: ResourceRequest, user_id: Any) -> Record:
        """Return the logged-in customer if it is the one being addressed."""
        customer_id = None
        if request.session:
            customer_id = self._ctx.sessions.customer_for(request.session)
        if customer_id is None:
            raise AuthorizationError()
        try:
            requested = int(user_id)
        except (TypeError, ValueError):
            raise AuthorizationError() from None
        if customer_id != requested:
            raise AuthorizationError()

        customer = self._ctx.customers.load(customer_id)
        if customer is None:
            raise AuthorizationError()
        return dict(customer)

    # --- Loading --------------------------------------------------------------

    def _load(self, entity_id: Any, repository: RecordRepository | None = None) -> Record:
        repository = repository or self._repository
        record = repository.load(parse_id(entity_id))  # type: ignore[union-attr]
        if record is None:
            raise NotFoundError()
        return dict(record)

    def _query(
        self,
        filters: Filters,
        sort: str | None = None,
        repository: RecordRepository | None = None,
    ) -> list[Record]:
        repository = repository or self._repository
        return [dict(r) for r in repository.query(filters, sort)]  # type: ignore[union-attr]

    # --- Persistence ----------------------------------------------------------

    def _populate(
        self,
        record: Record,
        data: dict[str, Any],
        repository: RecordRepository | None = None,
    ) -> Record:
        """Merge incoming data into ``record`` and save it."""
        record.update(unalias(data, self.fields))
        return self._save(record, repository)

    def _save(self, record: Record, repository: RecordRepository | None = None) -> Record:
        repository = repository or self._repository
        try:
            return dict(repository.save(record))  # type: ignore[union-attr]
        except ValidationError as exc:
            logger.info("Rejected %s: %s", type(self).__name__, exc)
            raise ClientInputError(f"Entity Validation Error: {exc}") from exc
        except DomainException as exc:
            logger.error("Could not save %s record", type(self).__name__, exc_info=True)
            raise UpstreamError(exc) from exc

    def _delete(self, entity_id: int, repository: RecordRepository | None = None) -> None:
        repository = repository or self._repository
        try:
            repository.delete(entity_id)  # type: ignore[union-attr]
        except DomainException as exc:
            logger.error("Could not delete %s #%s", type(self).__name__, entity_id, exc_info=True)
            raise UpstreamError(exc) from exc

    # --- Caching --------------------------------------------------------------

    def _cached(self, request: ResourceRequest) -> ApiResponse | None:
        if self.cache_lifetime <= 0:
            return None
        return self._ctx.cache.lookup(request)

    # --- Responses ------------------------------------------------------------

    def _ok(
        self,
        request: ResourceRequest,
        data: Any,
        tags: Iterable[str] = (),
    ) -> ApiResponse:
        body = to_json(data)
        headers: dict[str, str] = {}
        if self.cache_lifetime > 0:
            self._ctx.cache.store(request, body, tags, self.cache_lifetime)
            headers["Cache-Control"] = f"max-age={self.cache_lifetime}"
        return ApiResponse(status=200, body=body, headers=headers)

    @staticmethod
    def _created(data: dict[str, Any]) -> ApiResponse:
        headers = {}
        if data.get("links"):
            headers["Location"] = data["links"][0]["href"]
        return ApiResponse(status=201, body=to_json(data), headers=headers)

    @staticmethod
    def _no_content(status: int = 200) -> ApiResponse:
        return ApiResponse(status=status)

    # --- Misc -----------------------------------------------------------------

    @staticmethod
    def _id_of(record: Record, key: str = "entity_id") -> int | None:
        return record_id(record, key)
