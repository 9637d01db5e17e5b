"""Field projection: shaping a Record into its public representation.

Each resource declares a FieldSpec (which fields to expose, under which
names, grouped how) and a LinkSpec (which hyperlinks to attach). The
projector walks both in order and never fails on a sparse record: a field
the record does not carry comes out as ``None`` and a link placeholder
with nothing to fill it comes out empty.
"""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Any, Union

from storefront.application.routes import Router
from storefront.domain.exceptions import MalformedTemplateError
from storefront.domain.model.record import Record


@dataclass(frozen=True)
class Direct:
    """Expose ``record[name]`` as ``name``."""

    name: str


@dataclass(frozen=True)
class Alias:
    """Expose ``record[source]`` as ``output``."""

    output: str
    source: str


@dataclass(frozen=True)
class Embedded:
    """Expose a nested object built from the same record."""

    output: str
    rules: tuple[Rule, ...]


Rule = Union[Direct, Alias, Embedded]
FieldSpec = tuple[Rule, ...]


@dataclass(frozen=True)
class ResourceRef:
    resource: str
    method: str


@dataclass(frozen=True)
class Link:
    """A hyperlink descriptor: a literal URI template or a resource method.

    ``strict`` links refuse to render with a missing placeholder value.
    """

    rel: str
    href: str | None = None
    resource: ResourceRef | None = None
    strict: bool = False


LinkSpec = tuple[Link, ...]

_PLACEHOLDER = re.compile(r"\{([^{}]+)\}")


def fields(*entries: str | Rule) -> FieldSpec:
    """Build a FieldSpec, accepting bare names as shorthand for Direct."""
    return tuple(Direct(e) if isinstance(e, str) else e for e in entries)


def source_key(rule: Direct | Alias) -> str:
    return rule.name if isinstance(rule, Direct) else rule.source


def output_key(rule: Rule) -> str:
    return rule.name if isinstance(rule, Direct) else rule.output


class Projector:

    def __init__(self, router: Router, strict_links: bool = False) -> None:
        self._router = router
        self._strict_links = strict_links

    def project(
        self,
        record: Record | None,
        field_spec: FieldSpec,
        link_spec: LinkSpec = (),
    ) -> dict[str, Any]:
        source = record or {}
        output: dict[str, Any] = {}

        for rule in field_spec:
            if isinstance(rule, Embedded):
                output[rule.output] = self.project(source, rule.rules, ())
            else:
                output[output_key(rule)] = source.get(source_key(rule))

        if link_spec:
            output["links"] = [self.resolve_link(link, source) for link in link_spec]

        return output

    def resolve_link(self, link: Link, record: Record) -> dict[str, str]:
        if link.href is not None:
            template = link.href
        elif link.resource is not None:
            template = self._router.path_for(link.resource.resource, link.resource.method)
        else:
            template = ""

        if "://" in template:
            href = template
        else:
            href = self.expand(template, record, strict=link.strict or self._strict_links)

        return {"rel": link.rel, "href": href}

    @staticmethod
    def expand(template: str, record: Record, strict: bool = False) -> str:
        """Substitute every ``{field}`` in ``template`` from ``record``."""

        def substitute(match: re.Match) -> str:
            name = match.group(1)
            value = record.get(name)
            if value is None or value == "":
                if strict:
                    raise MalformedTemplateError(template, name)
                return ""
            return str(value)

        return _PLACEHOLDER.sub(substitute, template)
