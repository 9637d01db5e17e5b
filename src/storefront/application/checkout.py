"""Application service: Checkout use case.

Turns a cart into an immutable order once the client supplies payment
information. Address completeness and payment method resolution happen
here; pricing and order creation belong to the CheckoutService.
"""

from __future__ import annotations

import logging
from typing import Any

from storefront.application.card_sources import (
    VAULT,
    LegacyProfileCardSource,
    VaultCardSource,
)
from storefront.application.errors import ClientInputError, ConflictError, UpstreamError
from storefront.application.resources.base import entity_id_from_url, first_href
from storefront.domain.exceptions import ValidationError
from storefront.domain.model.cart import Cart
from storefront.domain.model.record import Record, record_id
from storefront.domain.repository.cart_repository import CartRepository
from storefront.domain.repository.checkout_service import CheckoutService, PaymentInfo
from storefront.domain.repository.record_repository import RecordRepository

logger = logging.getLogger(__name__)

REQUIRED_ADDRESS_FIELDS = (
    "firstname",
    "lastname",
    "street",
    "city",
    "postcode",
    "country_id",
    "telephone",
)


def is_complete_address(address: Record | None) -> bool:
    if not address:
        return False
    return all(str(address.get(name) or "").strip() for name in REQUIRED_ADDRESS_FIELDS)


class CheckoutHandler:

    def __init__(
        self,
        checkout: CheckoutService,
        carts: CartRepository,
        orders: RecordRepository,
        addresses: RecordRepository,
        vault: VaultCardSource,
        legacy: LegacyProfileCardSource,
    ) -> None:
        self._checkout = checkout
        self._carts = carts
        self._orders = orders
        self._addresses = addresses
        self._vault = vault
        self._legacy = legacy

    def handle(self, cart: Cart, payment_data: dict[str, Any], customer: Record) -> Record:
        """Submit the cart as an order and return the order record.

        Steps:
        1. Physical carts need a complete shipping address.
        2. Resolve the payment method (free, tokenize, stored card).
        3. Payable carts need a complete billing address.
        4. Submit, then discard the cart. A failed submit keeps the cart.
        """
        if not cart.is_virtual and not is_complete_address(cart.shipping_address):
            raise ClientInputError("A valid shipping address must be specified.")

        payment = {k: v for k, v in payment_data.items() if k != "links"}
        method = "tokenize" if cart.grand_total else "free"

        if payment_data.get("links"):
            method = self._apply_stored_card(cart, payment_data, payment, customer) or method

        if cart.grand_total and not is_complete_address(cart.billing_address):
            raise ClientInputError("A valid billing address must be specified.")

        payment["method"] = method

        try:
            order_id = self._checkout.submit_order(cart, PaymentInfo(method, payment))
        except ValidationError as exc:
            logger.info("Order rejected for session %s: %s", cart.session_id, exc)
            raise ClientInputError(exc) from exc
        except Exception as exc:
            logger.error("Order submission failed for session %s", cart.session_id, exc_info=True)
            raise UpstreamError(exc) from exc

        order = self._orders.load(order_id)
        if order is None:
            logger.error("Submitted order #%s could not be loaded", order_id)
            raise UpstreamError(f"Order #{order_id} could not be loaded")

        self._carts.discard(cart.session_id)
        return dict(order)

    def _apply_stored_card(
        self,
        cart: Cart,
        payment_data: dict[str, Any],
        payment: dict[str, Any],
        customer: Record,
    ) -> str | None:
        url = first_href(payment_data)
        card_id = entity_id_from_url(url)
        card = self._vault.load(card_id) or self._legacy.load(card_id)
        if card is None or record_id(card, "customer_id") != record_id(customer):
            raise ConflictError(f"Invalid Resource URL {url}")

        address_id = record_id(card, "address_id")
        if address_id is not None:
            address = self._addresses.load(address_id)
            if address:
                cart.billing_address = {**address, "email": customer.get("email")}

        if card["source"] == VAULT:
            payment["cc_vaulted"] = card_id
            return "creditcard"

        payment["cybersource_subid"] = (
            card.get("encrypted_subscription_id") or card.get("subscription_id")
        )
        return None
