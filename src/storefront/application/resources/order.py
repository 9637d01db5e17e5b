"""Order resource: a customer's orders and the cart that becomes one.

``POST /user/{id}/order`` is dual-purpose. It always applies the request's
deltas to the session cart; when the cart then holds items and the request
carries payment information it checks out (201), otherwise it answers
with a snapshot of the cart (202).
"""

from __future__ import annotations

import logging
from typing import Any

from storefront.application.cart import CartUpdater, SessionLocks
from storefront.application.checkout import CheckoutHandler
from storefront.application.dto import ApiResponse, ResourceRequest, to_json
from storefront.application.errors import (
    MALFORMED_BODY,
    AuthorizationError,
    ClientInputError,
    UpstreamError,
    WebApplicationError,
)
from storefront.application.projection import Alias, Link, fields
from storefront.application.resources.base import REL, Resource, ResourceContext
from storefront.domain.exceptions import DomainException
from storefront.domain.model.cart import Cart
from storefront.domain.model.product import ProductType
from storefront.domain.model.record import Record, record_id
from storefront.domain.repository.cart_repository import CartRepository
from storefront.domain.repository.checkout_service import CheckoutService
from storefront.domain.repository.record_repository import RecordRepository

logger = logging.getLogger(__name__)

HIDDEN_STATUSES = ["splitted", "updated"]


class OrderResource(Resource):
    fields = fields(
        Alias("number", "increment_id"),
        "status",
        Alias("created", "created_at"),
        Alias("updated", "updated_at"),
        "coupon_code",
        Alias("credit_redeemed", "reward_currency_amount"),
        Alias("total_qty", "total_qty_ordered"),
        Alias("total_weight", "weight"),
        Alias("shipping", "shipping_amount"),
        Alias("tax", "tax_amount"),
        Alias("discount", "discount_amount"),
        "subtotal",
        "grand_total",
        "products",
        "payment",
        "addresses",
    )
    links = (
        Link("self", href="/order/{entity_id}"),
        Link(f"{REL}/entity/user", href="/user/{customer_id}"),
    )

    def __init__(
        self,
        context: ResourceContext,
        orders: RecordRepository,
        carts: CartRepository,
        checkout_service: CheckoutService,
        updater: CartUpdater,
        checkout: CheckoutHandler,
        locks: SessionLocks,
    ) -> None:
        super().__init__(context, orders)
        self._carts = carts
        self._checkout_service = checkout_service
        self._updater = updater
        self._checkout = checkout
        self._locks = locks

    # --- Operations -----------------------------------------------------------

    def get_user_orders(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        orders = self._query(
            {"customer_id": record_id(customer), "status": {"nin": HIDDEN_STATUSES}},
            "updated_at DESC",
        )
        return self._ok(request, [self.format_order(order) for order in orders])

    def get_order_entity(self, request: ResourceRequest, order_id: Any) -> ApiResponse:
        order = self._load(order_id)
        self._authorize(request, order.get("customer_id"))
        return self._ok(request, self.format_order(order))

    def create_order_entity(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        data = request.json()
        session_id = request.session
        if not session_id:
            raise AuthorizationError()

        with self._locks.hold(session_id):
            cart = self._carts.get_for_session(session_id, record_id(customer))
            try:
                self._updater.apply(cart, data, customer)
            except WebApplicationError:
                self._save_cart(cart)
                raise
            self._save_cart(cart)

            if cart.items and "payment" in data:
                if not isinstance(data["payment"], dict):
                    raise ClientInputError(MALFORMED_BODY)
                order = self._checkout.handle(cart, data["payment"], customer)
                logger.info(
                    "Customer #%s placed order #%s", record_id(customer), record_id(order)
                )
                return self._created(self.format_order(order))

            return ApiResponse(status=202, body=to_json(self.format_cart(cart)))

    # --- Representation -------------------------------------------------------

    def format_order(self, order: Record) -> dict[str, Any]:
        router = self._ctx.router
        payment = order.get("payment") or {}

        addresses = []
        for kind in ("billing", "shipping"):
            address_id = record_id(order, f"{kind}_address_id")
            if address_id is not None:
                addresses.append(
                    {
                        "type": kind,
                        "links": [
                            {
                                "rel": f"{REL}/entity/address",
                                "href": router.build("address", "entity", address_id),
                            }
                        ],
                    }
                )

        products = [
            {
                "name": item.get("name"),
                "price": item.get("price"),
                "qty": item.get("qty_ordered"),
                "weight": item.get("weight"),
                "links": [self._product_link(item.get("product_id"))],
            }
            for item in order.get("items") or []
        ]

        data = {
            **order,
            "payment": {
                key: payment.get(key)
                for key in ("cc_type", "cc_last4", "cc_exp_month", "cc_exp_year")
            },
            "addresses": addresses,
            "products": products,
        }
        return self._format(data)

    def format_cart(self, cart: Cart) -> dict[str, Any]:
        """The 202 snapshot of a cart that has not been checked out."""
        data: dict[str, Any] = {}
        now = self._ctx.clock()

        if cart.items:
            data["expires"] = cart.expires_in(self._ctx.config.cart_shelf_life, now)

        data.update(
            {
                "shipping_amount": cart.shipping_amount.as_float(),
                "tax_amount": cart.tax_amount.as_float(),
                "grand_total": cart.grand_total.as_float(),
                "subtotal": cart.subtotal.as_float(),
                "discount_amount": cart.discount_amount.as_float(),
                "coupon_code": cart.coupon_code,
                "use_credit": int(cart.use_credit),
                "credit_used": cart.credit_used.as_float(),
                "savings_amount": cart.savings_amount.as_float(),
            }
        )

        ship_date = None
        if any(not item.is_virtual for item in cart.items):
            try:
                ship_date = self._checkout_service.estimate_ship_date(cart)
            except DomainException as exc:
                logger.error("Could not estimate ship date", exc_info=True)
                raise UpstreamError(exc) from exc

        products = []
        for item in cart.items:
            entry: dict[str, Any] = {
                "name": item.name,
                "price": item.unit_price.as_float(),
                "qty": item.qty,
                "type": item.product_type.value,
                "links": [self._product_link(item.product_id)],
            }
            if item.product_type is ProductType.CONFIGURABLE:
                entry["attributes"] = dict(item.attributes)
            if not item.is_virtual and ship_date is not None:
                entry["estimated_shipping"] = ship_date.isoformat()
            products.append(entry)
        data["products"] = products

        return data

    # --- Helpers --------------------------------------------------------------

    def _product_link(self, product_id: Any) -> dict[str, str]:
        return {
            "rel": f"{REL}/entity/product",
            "href": self._ctx.router.build("product", "entity", product_id),
        }

    def _save_cart(self, cart: Cart) -> None:
        try:
            self._carts.save(cart)
        except DomainException as exc:
            logger.error("Could not save cart for session %s", cart.session_id, exc_info=True)
            raise UpstreamError(exc) from exc
