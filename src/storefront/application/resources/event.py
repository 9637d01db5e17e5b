"""Event resource: time-boxed sales grouping products."""

from __future__ import annotations

from typing import Any

from storefront.application.dto import ApiResponse, ResourceRequest
from storefront.application.errors import ClientInputError
from storefront.application.projection import Alias, Link, fields
from storefront.application.resources.base import REL, Resource, ResourceContext, parse_id
from storefront.domain.model.product import discount_pct
from storefront.domain.model.record import Record, as_datetime, as_list, is_truthy, record_id
from storefront.domain.repository.record_repository import RecordRepository

EVENT_COLLECTION_TAG = "CATEGORY_EVENT"
WHEN_VALUES = ("current", "upcoming")


def event_tag(event_id: Any) -> str:
    return f"CATALOG_CATEGORY_{event_id}"


class EventResource(Resource):
    fields = fields(
        "name",
        "description",
        "short_description",
        "max_discount_pct",
        "department",
        "age",
        Alias("start", "event_start_date"),
        Alias("end", "event_end_date"),
        "image",
    )
    links = (
        Link("self", href="/event/{entity_id}"),
        Link(f"{REL}/collection/product", href="/event/{entity_id}/product"),
    )
    cache_lifetime = 3600

    def __init__(
        self,
        context: ResourceContext,
        events: RecordRepository,
        products: RecordRepository,
    ) -> None:
        super().__init__(context, events)
        self._products = products

    # --- Operations -----------------------------------------------------------

    def get_event_collection(self, request: ResourceRequest) -> ApiResponse:
        cached = self._cached(request)
        if cached:
            return cached

        when = request.query.get("when") or "current"
        if when not in WHEN_VALUES:
            raise ClientInputError(f"Invalid value for 'when' parameter: {when}")

        now = self._ctx.clock()
        results = []
        for event in self._query({}, "event_start_date ASC"):
            if is_truthy(event.get("club_only_event")):
                continue

            start = as_datetime(event.get("event_start_date"))
            end = as_datetime(event.get("event_end_date"))
            members = self._members(event)

            if when == "upcoming":
                selected = start is not None and start > now
            else:
                selected = (
                    (start is None or start <= now)
                    and end is not None
                    and end > now
                    and bool(members)
                )
            if selected:
                results.append(self.format_event(event, members))

        return self._ok(request, results, tags=[EVENT_COLLECTION_TAG])

    def get_event_entity(self, request: ResourceRequest, event_id: Any) -> ApiResponse:
        cached = self._cached(request)
        if cached:
            return cached

        event = self._load(event_id)
        return self._ok(request, self.format_event(event), tags=[event_tag(parse_id(event_id))])

    # --- Representation -------------------------------------------------------

    def format_event(self, event: Record, members: list[Record] | None = None) -> dict[str, Any]:
        if members is None:
            members = self._members(event)

        data = {
            **event,
            "image": self._images(event),
            "max_discount_pct": max((discount_pct(p) for p in members), default=0),
            "department": _union(p.get("departments") for p in members),
            "age": _union(p.get("ages") for p in members),
        }
        web_url = self._ctx.config.web_url.rstrip("/")
        links = self.links + (
            Link("alternate", href=f"{web_url}/sales/{event.get('url_key') or ''}.html"),
        )
        return self._format(data, links=links)

    def _members(self, event: Record) -> list[Record]:
        return self._query({"category_ids": record_id(event)}, repository=self._products)

    def _images(self, event: Record) -> dict[str, str]:
        web_url = self._ctx.config.web_url.rstrip("/")
        media = f"{web_url}/media/catalog/category/"
        placeholder = f"{web_url}/skin/frontend/images/catalog/product/placeholder/"

        image = {
            "default": placeholder + "image.jpg",
            "small": placeholder + "small.jpg",
            "thumbnail": placeholder + "thumbnail.jpg",
        }
        default = event.get("default_image") or event.get("image")
        if isinstance(default, str) and default:
            image["default"] = media + default
        if event.get("small_image"):
            image["small"] = media + event["small_image"]
        if event.get("thumbnail"):
            image["thumbnail"] = media + event["thumbnail"]
        if event.get("logo"):
            image["logo"] = media + event["logo"]
        return image


def _union(values) -> list:
    seen: list = []
    for value in values:
        for item in as_list(value):
            if item not in seen:
                seen.append(item)
    return seen
