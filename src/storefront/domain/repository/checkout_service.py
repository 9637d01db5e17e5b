"""Abstract checkout collaborator.

Shipping rates, ship-date estimates and order submission are commerce
platform logic; the facade only drives them.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import date
from typing import Any

from storefront.domain.model.cart import Cart
from storefront.domain.model.value_objects import Money


@dataclass(frozen=True)
class ShippingRate:
    code: str
    title: str
    amount: Money


@dataclass(frozen=True)
class PaymentInfo:
    """What the customer pays with, as resolved at checkout."""

    method: str  # "tokenize" | "creditcard" | "free"
    data: dict[str, Any] = field(default_factory=dict)


class CheckoutService(ABC):

    @abstractmethod
    def shipping_rates(self, cart: Cart) -> list[ShippingRate]:
        """Rates available for the cart's current shipping address."""

    @abstractmethod
    def collect_totals(self, cart: Cart) -> None:
        """Recompute the cart's tax and discount amounts in place.

        Raises ValidationError when the cart's coupon code is not valid.
        """

    @abstractmethod
    def estimate_ship_date(self, cart: Cart) -> date:
        """Estimated date physical items leave the warehouse."""

    @abstractmethod
    def submit_order(self, cart: Cart, payment: PaymentInfo) -> int:
        """Convert the cart into an order atomically and return its id.

        Raises ValidationError for anything the platform rejects; any other
        exception means nothing was created.
        """
