"""Product records as the cart sees them.

Products live independently of carts and orders; the catalog owns them.
The helpers here read the handful of fields the cart state machine needs
(type, prices, configurable attributes) off a product Record.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal
from enum import Enum

from storefront.domain.model.record import Record, is_truthy
from storefront.domain.model.value_objects import Money


class ProductType(Enum):
    SIMPLE = "simple"
    VIRTUAL = "virtual"
    CONFIGURABLE = "configurable"
    BUNDLE = "bundle"

    @staticmethod
    def of(record: Record) -> ProductType:
        try:
            return ProductType(record.get("type_id") or "simple")
        except ValueError:
            return ProductType.SIMPLE


@dataclass(frozen=True)
class AttributeOption:
    value_index: int
    label: str


@dataclass(frozen=True)
class ConfigurableAttribute:
    """A super attribute (e.g. Color) whose values select a variant."""

    attribute_id: int
    attribute_code: str
    label: str
    options: tuple[AttributeOption, ...]

    def option_for(self, label: str) -> AttributeOption | None:
        for option in self.options:
            if option.label == label:
                return option
        return None


def configurable_attributes(product: Record) -> list[ConfigurableAttribute]:
    """Return the configurable attributes declared on a product record."""
    attributes = []
    for raw in product.get("configurable_attributes") or []:
        attributes.append(
            ConfigurableAttribute(
                attribute_id=int(raw["attribute_id"]),
                attribute_code=raw.get("attribute_code", ""),
                label=raw["label"],
                options=tuple(
                    AttributeOption(int(v["value_index"]), v["label"])
                    for v in raw.get("values") or []
                ),
            )
        )
    return attributes


def sale_price(product: Record) -> Money:
    """The price a customer pays: the special price when one is set."""
    special = product.get("special_price")
    if special not in (None, ""):
        return Money.of(special)
    return Money.of(product.get("price"))


def list_price(product: Record) -> Money:
    return Money.of(product.get("price"))


def is_salable(product: Record) -> bool:
    return is_truthy(product.get("is_salable", True))


def discount_pct(product: Record) -> int:
    """Whole-percent markdown of the sale price against the list price."""
    price = list_price(product)
    if not price:
        return 0
    saved = price.clamp_sub(sale_price(product))
    return int((saved.amount / price.amount * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
