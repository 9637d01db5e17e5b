"""Root resource: the API's entry point."""

from __future__ import annotations

from storefront.application.dto import ApiResponse, ResourceRequest
from storefront.application.projection import Link, ResourceRef
from storefront.application.resources.base import REL, Resource


class RootResource(Resource):
    links = (
        Link(f"{REL}/user", resource=ResourceRef("user", "collection")),
        Link(f"{REL}/event", resource=ResourceRef("event", "collection")),
    )

    def root(self, request: ResourceRequest) -> ApiResponse:
        return self._ok(request, self._format({}))
