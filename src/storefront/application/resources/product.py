"""Product resource: catalog items, alone or as members of an event."""

from __future__ import annotations

import html
import re
from typing import Any

from storefront.application.dto import ApiResponse, ResourceRequest
from storefront.application.errors import ClientInputError
from storefront.application.projection import Alias, Embedded, Link, fields
from storefront.application.resources.base import REL, Resource, ResourceContext, parse_id
from storefront.application.resources.event import event_tag
from storefront.domain.model.product import (
    ProductType,
    configurable_attributes,
    is_salable,
)
from storefront.domain.model.record import Record, as_list, is_truthy, record_id
from storefront.domain.repository.record_repository import RecordRepository

_TAGS = re.compile(r"<[^>]+>")


def product_tag(product_id: Any) -> str:
    return f"CATALOG_PRODUCT_{product_id}"


def strip_html(value: Any) -> str:
    if not value:
        return ""
    return _TAGS.sub("", html.unescape(str(value))).strip()


class ProductResource(Resource):
    fields = fields(
        "name",
        "description",
        "short_description",
        "shipping_returns",
        "department",
        "age",
        "attributes",
        "vendor_style",
        "sku",
        "weight",
        Embedded(
            "price",
            fields(Alias("price", "special_price"), Alias("orig", "price"), "msrp"),
        ),
        "hot",
        "featured",
        "image",
        "type",
    )
    links = (
        Link("self", href="/product/{entity_id}"),
        Link(f"{REL}/entity/event", href="/event/{event_id}"),
    )
    cache_lifetime = 3600

    def __init__(
        self,
        context: ResourceContext,
        products: RecordRepository,
        events: RecordRepository,
    ) -> None:
        super().__init__(context, products)
        self._events = events

    # --- Operations -----------------------------------------------------------

    def get_product_collection(self, request: ResourceRequest) -> ApiResponse:
        slug = (request.query.get("slug") or "").strip()
        if not slug:
            raise ClientInputError("No 'slug' query parameter supplied.")

        cached = self._cached(request)
        if cached:
            return cached

        url_key = slug.rstrip("/").rsplit("/", 1)[-1]
        if url_key.endswith(".html"):
            url_key = url_key[: -len(".html")]

        matches = self._query({"url_key": url_key})
        results = [self.format_product(product) for product in matches[:1]]
        tags = [product_tag(record_id(product)) for product in matches[:1]]
        return self._ok(request, results, tags=tags)

    def get_product_entity(self, request: ResourceRequest, product_id: Any) -> ApiResponse:
        cached = self._cached(request)
        if cached:
            return cached

        product = self._load(product_id)
        return self._ok(
            request, self.format_product(product), tags=[product_tag(parse_id(product_id))]
        )

    def get_event_product_collection(self, request: ResourceRequest, event_id: Any) -> ApiResponse:
        cached = self._cached(request)
        if cached:
            return cached

        event = self._load(event_id, self._events)
        tags = [event_tag(record_id(event))]
        results = []
        for product in self._query({"category_ids": record_id(event)}, "position ASC"):
            if not is_salable(product):
                continue
            results.append(self.format_product(product, event))
            tags.append(product_tag(record_id(product)))

        return self._ok(request, results, tags=tags)

    # --- Representation -------------------------------------------------------

    def format_product(self, product: Record, event: Record | None = None) -> dict[str, Any]:
        if event is None:
            event = self._event_for(product)

        web_url = self._ctx.config.web_url.rstrip("/")
        data = {
            **product,
            "event_id": record_id(event) if event else None,
            "shipping_returns": strip_html(product.get("shipping_returns")),
            "department": as_list(product.get("departments")),
            "age": as_list(product.get("ages")),
            "hot": is_truthy(product.get("hot_list")),
            "featured": is_truthy(product.get("featured")),
            "image": [
                f"{web_url}/media/catalog/product{_image_file(image)}"
                for image in product.get("media_gallery") or []
            ],
            "attributes": self._attributes(product),
            "type": ProductType.of(product).value,
        }

        event_key = (event or {}).get("url_key") or ""
        links = self.links + (
            Link("alternate", href=f"{web_url}/{event_key}/{product.get('url_key') or ''}.html"),
        )
        return self._format(data, links=links)

    def _event_for(self, product: Record) -> Record | None:
        for event_id in as_list(product.get("category_ids")):
            event = self._events.load(event_id)
            if event:
                return dict(event)
        return None

    @staticmethod
    def _attributes(product: Record) -> dict[str, Any] | None:
        product_type = ProductType.of(product)

        if product_type is ProductType.CONFIGURABLE:
            attributes = configurable_attributes(product)
            result: dict[str, Any] = {attribute.label: [] for attribute in attributes}
            for variant in product.get("variants") or []:
                if not is_salable(variant):
                    continue
                for attribute in attributes:
                    value = variant.get(attribute.attribute_code)
                    if value is not None and value not in result[attribute.label]:
                        result[attribute.label].append(value)
            return result

        if product_type is ProductType.SIMPLE:
            result = {}
            if product.get("color"):
                result["Color"] = product["color"]
            if product.get("size"):
                result["Size"] = product["size"]
            return result

        return None


def _image_file(image: Any) -> str:
    file = image.get("file", "") if isinstance(image, dict) else str(image)
    return file if file.startswith("/") else "/" + file
