"""Data Transfer Objects: plain containers that cross layer boundaries.

The web layer translates framework requests into ``ResourceRequest`` and
``ApiResponse`` back into framework responses, so resources never import
the HTTP framework.
"""

from __future__ import annotations

import json
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from typing import Any

from storefront.application.errors import MALFORMED_BODY, ClientInputError

DEVELOPMENT_ENVIRONMENTS = frozenset({"dev", "development"})


@dataclass(frozen=True)
class ApiConfig:
    """Environment-driven settings the resources need."""

    environment: str = "dev"
    web_url: str = "http://localhost:8000"
    cart_shelf_life: int = 900


def is_development(environment: str) -> bool:
    """``dev`` and ``development`` in any case name the development environment."""
    return environment.strip().lower() in DEVELOPMENT_ENVIRONMENTS


@dataclass(frozen=True)
class ResourceRequest:
    """An incoming request as the resources see it."""

    path: str = "/"
    query: dict[str, str] = field(default_factory=dict)
    headers: dict[str, str] = field(default_factory=dict)
    body: bytes | str | None = None
    session: str | None = None

    def header(self, name: str) -> str | None:
        lowered = name.lower()
        for key, value in self.headers.items():
            if key.lower() == lowered:
                return value
        return None

    def json(self) -> dict[str, Any]:
        """Decode the body as a JSON object, or fail with a 400."""
        if self.body is None or self.body in (b"", ""):
            raise ClientInputError(MALFORMED_BODY)
        try:
            data = json.loads(self.body)
        except (ValueError, UnicodeDecodeError) as exc:
            raise ClientInputError(MALFORMED_BODY) from exc
        if not isinstance(data, dict):
            raise ClientInputError(MALFORMED_BODY)
        return data


@dataclass
class ApiResponse:
    status: int = 200
    body: str | None = None
    headers: dict[str, str] = field(default_factory=dict)

    def json(self) -> Any:
        return json.loads(self.body) if self.body else None


def _default(value: Any) -> Any:
    if isinstance(value, Decimal):
        return float(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, (set, frozenset)):
        return sorted(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


def to_json(data: Any) -> str:
    return json.dumps(data, default=_default)
