"""Cart mutation: applying a request's deltas to a session's cart.

A cart request may carry product deltas, address deltas, a reward-credit
toggle and a coupon code, in any combination. ``CartUpdater`` applies them
in that order. Mutations made before a failing step are kept; callers
serialize whole read-modify-write cycles per session with ``SessionLocks``.
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from datetime import datetime
from typing import Any

from storefront.application.errors import ClientInputError, ConflictError, UpstreamError
from storefront.application.resources.address import ADDRESS_FIELDS
from storefront.application.resources.base import entity_id_from_url, first_href, unalias
from storefront.domain.exceptions import DomainException, ValidationError
from storefront.domain.model.cart import Cart
from storefront.domain.model.product import ProductType, configurable_attributes
from storefront.domain.model.record import Record, is_truthy, record_id
from storefront.domain.model.value_objects import ZERO, Money, Quantity
from storefront.domain.repository.checkout_service import CheckoutService
from storefront.domain.repository.record_repository import RecordRepository

logger = logging.getLogger(__name__)

VIRTUAL_QTY_LOCKED = "The quantity for a virtual product item cannot be modified."


class SessionLocks:
    """One lock per session id, held only while a request for it is running."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: dict[str, tuple[threading.Lock, int]] = {}

    def __len__(self) -> int:
        with self._guard:
            return len(self._locks)

    @contextmanager
    def hold(self, session_id: str) -> Iterator[None]:
        with self._guard:
            lock, waiters = self._locks.get(session_id) or (threading.Lock(), 0)
            self._locks[session_id] = (lock, waiters + 1)
        try:
            with lock:
                yield
        finally:
            with self._guard:
                _, waiters = self._locks[session_id]
                if waiters == 1:
                    del self._locks[session_id]
                else:
                    self._locks[session_id] = (lock, waiters - 1)


class CartUpdater:

    def __init__(
        self,
        products: RecordRepository,
        addresses: RecordRepository,
        checkout: CheckoutService,
        clock: Callable[[], datetime],
    ) -> None:
        self._products = products
        self._addresses = addresses
        self._checkout = checkout
        self._clock = clock

    def apply(self, cart: Cart, data: dict[str, Any], customer: Record) -> None:
        if isinstance(data.get("products"), list):
            self._update_products(cart, data["products"])
        if isinstance(data.get("addresses"), dict):
            self._update_addresses(cart, data["addresses"], customer)

        if "use_credit" in data:
            try:
                cart.credit_available = Money.of(customer.get("reward_balance"))
            except ValidationError as exc:
                logger.warning("Customer #%s has an unusable reward balance: %s", record_id(customer), exc)
                raise ClientInputError(f"Could not apply store credit -- {exc}") from exc
            cart.use_credit = is_truthy(data["use_credit"])

        if "coupon_code" in data:
            cart.coupon_code = data["coupon_code"] or None

        self._collect_totals(cart)
        cart.start_countdown(self._clock())

    def _collect_totals(self, cart: Cart) -> None:
        try:
            self._checkout.collect_totals(cart)
        except ValidationError as exc:
            logger.info("Totals rejected for session %s: %s", cart.session_id, exc)
            cart.coupon_code = None
            cart.discount_amount = ZERO
            raise ClientInputError(exc) from exc
        except DomainException as exc:
            logger.error("Could not collect cart totals", exc_info=True)
            raise UpstreamError(exc) from exc

    # --- Products -------------------------------------------------------------

    def _update_products(self, cart: Cart, entries: list[Any]) -> None:
        updates: dict[int, int] = {}

        for entry in entries:
            url = first_href(entry)
            product = self._products.load(entity_id_from_url(url))
            if not product:
                raise ClientInputError(f"Invalid Resource URL {url}")

            try:
                qty = Quantity.parse(entry.get("qty", 1))
            except ValidationError as exc:
                raise ClientInputError(f"Could not add Product {url} -- {exc}") from exc

            product_type = ProductType.of(product)
            selection: dict[int, int] = {}
            labels: dict[str, str] = {}
            if product_type is ProductType.CONFIGURABLE:
                requested = entry.get("attributes")
                selection, labels = self._resolve_attributes(
                    url, product, {} if requested is None else requested
                )

            item = cart.find_match(record_id(product), product_type, selection)  # type: ignore[arg-type]

            if product_type is ProductType.VIRTUAL and item is not None:
                if qty.value == 0:
                    cart.remove_item(item.item_id)
                elif qty.value > 1:
                    raise ConflictError(VIRTUAL_QTY_LOCKED)
                continue

            if item is not None:
                updates[item.item_id] = qty.value
            elif qty.value > 0:
                try:
                    cart.add_item(product, qty, selection, labels)
                except ValidationError as exc:
                    raise ClientInputError(exc) from exc

        if updates:
            try:
                cart.update_quantities(updates)
            except ValidationError as exc:
                logger.info("Cart update rejected for session %s: %s", cart.session_id, exc)
                raise ConflictError(exc) from exc

    @staticmethod
    def _resolve_attributes(
        url: str, product: Record, requested: Any
    ) -> tuple[dict[int, int], dict[str, str]]:
        if not isinstance(requested, dict):
            raise ClientInputError(f"Could not add Product {url} -- Malformed attributes")

        selection: dict[int, int] = {}
        labels: dict[str, str] = {}
        for attribute in configurable_attributes(product):
            if attribute.label not in requested:
                raise ClientInputError(
                    f"Could not add Product {url} -- Missing attribute {attribute.label}"
                )
            value = requested[attribute.label]
            option = attribute.option_for(value)
            if option is None:
                raise ClientInputError(
                    f"Could not add Product {url} -- Attribute value '{value}' "
                    f"is invalid for attribute '{attribute.label}'"
                )
            selection[attribute.attribute_id] = option.value_index
            labels[attribute.label] = option.label
        return selection, labels

    # --- Addresses ------------------------------------------------------------

    def _update_addresses(self, cart: Cart, addresses: dict[str, Any], customer: Record) -> None:
        for kind, info in addresses.items():
            if kind not in ("shipping", "billing"):
                continue
            if not isinstance(info, dict):
                raise ClientInputError(f"Malformed {kind} address")

            if info.get("links"):
                url = first_href(info)
                address = self._addresses.load(entity_id_from_url(url))
                if not address or record_id(address, "customer_id") != record_id(customer):
                    raise ClientInputError(f"Invalid Resource URL {url}")
                data = dict(address)
            else:
                data = unalias(info, ADDRESS_FIELDS)
                if isinstance(data.get("street"), list):
                    data["street"] = "\n".join(str(line) for line in data["street"])

            data["email"] = customer.get("email")

            if kind == "shipping":
                cart.shipping_address = data
                self._select_shipping_rate(cart)
            else:
                cart.billing_address = data

    def _select_shipping_rate(self, cart: Cart) -> None:
        try:
            rates = self._checkout.shipping_rates(cart)
        except ValidationError as exc:
            raise ClientInputError(exc) from exc
        except DomainException as exc:
            logger.error("Could not collect shipping rates", exc_info=True)
            raise UpstreamError(exc) from exc

        if rates:
            cart.shipping_method = rates[0].code
            cart.shipping_amount = rates[0].amount
        else:
            cart.shipping_method = None
            cart.shipping_amount = ZERO
