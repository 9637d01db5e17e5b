"""Static route table.

Maps (resource, method) to a URI template. The web layer registers its
endpoints from this table and the router resolves resource references in
link specs against it, so a path is only ever spelled out once.
"""

from __future__ import annotations

import re
from abc import ABC, abstractmethod

ROUTES: dict[tuple[str, str], str] = {
    ("root", "root"): "/",
    ("event", "collection"): "/event",
    ("event", "entity"): "/event/{id}",
    ("product", "event_collection"): "/event/{id}/product",
    ("product", "collection"): "/product",
    ("product", "entity"): "/product/{id}",
    ("user", "collection"): "/user",
    ("user", "entity"): "/user/{id}",
    ("address", "user_collection"): "/user/{id}/address",
    ("address", "entity"): "/address/{id}",
    ("creditcard", "user_collection"): "/user/{id}/creditcard",
    ("creditcard", "entity"): "/creditcard/{id}",
    ("order", "user_collection"): "/user/{id}/order",
    ("order", "entity"): "/order/{id}",
    ("auth", "session"): "/auth",
}

_PARAM = re.compile(r"\{[^}]+\}")


class Router(ABC):

    @abstractmethod
    def path_for(self, resource: str, method: str) -> str:
        """Return the URI template for a resource method."""

    def build(self, resource: str, method: str, *ids: object) -> str:
        """Return the concrete path with path parameters filled in order."""
        values = iter(ids)
        return _PARAM.sub(
            lambda match: str(next(values, "")), self.path_for(resource, method)
        )


class StaticRouter(Router):

    def __init__(self, routes: dict[tuple[str, str], str] | None = None, base_path: str = "") -> None:
        self._routes = routes if routes is not None else ROUTES
        self._base_path = base_path.rstrip("/")

    def path_for(self, resource: str, method: str) -> str:
        try:
            path = self._routes[(resource, method)]
        except KeyError:
            raise KeyError(f"No route for {resource}.{method}") from None
        if not self._base_path:
            return path
        return self._base_path + ("" if path == "/" else path)
