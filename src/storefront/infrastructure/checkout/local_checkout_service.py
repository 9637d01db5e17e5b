"""A minimal local CheckoutService.

Charges one flat shipping rate, no tax, flat-amount coupons, and writes
orders into the order store. It stands in for the commerce platform when
the API runs on its own.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from datetime import date, datetime, timedelta
from typing import Any

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.cart import Cart
from storefront.domain.model.record import Record, record_id
from storefront.domain.model.value_objects import ZERO, Money
from storefront.domain.repository.checkout_service import (
    CheckoutService,
    PaymentInfo,
    ShippingRate,
)
from storefront.domain.repository.record_repository import RecordRepository

logger = logging.getLogger(__name__)

FLAT_RATE_CODE = "flexible_flexible"
INCREMENT_BASE = 100000000


class LocalCheckoutService(CheckoutService):

    def __init__(
        self,
        orders: RecordRepository,
        coupons: RecordRepository,
        vault: RecordRepository,
        flat_rate: Money,
        clock: Callable[[], datetime],
        handling_days: int = 3,
    ) -> None:
        self._orders = orders
        self._coupons = coupons
        self._vault = vault
        self._flat_rate = flat_rate
        self._clock = clock
        self._handling_days = handling_days

    # --- CheckoutService interface --------------------------------------------

    def shipping_rates(self, cart: Cart) -> list[ShippingRate]:
        if cart.shipping_address is None:
            return []
        amount = ZERO if cart.is_virtual else self._flat_rate
        return [ShippingRate(FLAT_RATE_CODE, "Standard Shipping", amount)]

    def collect_totals(self, cart: Cart) -> None:
        cart.tax_amount = ZERO
        if not cart.coupon_code:
            cart.discount_amount = ZERO
            return

        coupons = self._coupons.query({"code": cart.coupon_code})
        if not coupons:
            raise ValidationError(f'Coupon code "{cart.coupon_code}" is not valid.')
        cart.discount_amount = Money.of(coupons[0].get("discount_amount")).min(cart.subtotal)

    def estimate_ship_date(self, cart: Cart) -> date:
        """Today plus the handling time, counted in business days."""
        day = self._clock().date()
        remaining = self._handling_days
        while remaining:
            day += timedelta(days=1)
            if day.weekday() < 5:
                remaining -= 1
        return day

    def submit_order(self, cart: Cart, payment: PaymentInfo) -> int:
        if not cart.items:
            raise ValidationError("Cannot place an order for an empty cart.")

        now = self._clock().isoformat()
        order = self._orders.save(
            {
                "customer_id": cart.customer_id,
                "status": "pending",
                "created_at": now,
                "updated_at": now,
                "coupon_code": cart.coupon_code,
                "reward_currency_amount": cart.credit_used.as_float(),
                "total_qty_ordered": cart.total_qty,
                "weight": sum((item.weight or 0) * item.qty for item in cart.items),
                "shipping_amount": cart.shipping_amount.as_float(),
                "tax_amount": cart.tax_amount.as_float(),
                "discount_amount": cart.discount_amount.as_float(),
                "subtotal": cart.subtotal.as_float(),
                "grand_total": cart.grand_total.as_float(),
                "shipping_method": cart.shipping_method,
                "billing_address_id": record_id(cart.billing_address),
                "shipping_address_id": record_id(cart.shipping_address),
                "payment": self._payment_record(payment),
                "items": [
                    {
                        "product_id": item.product_id,
                        "name": item.name,
                        "price": item.unit_price.as_float(),
                        "qty_ordered": item.qty,
                        "weight": item.weight,
                        "product_type": item.product_type.value,
                        "attributes": item.attributes,
                    }
                    for item in cart.items
                ],
            }
        )
        order["increment_id"] = str(INCREMENT_BASE + record_id(order))  # type: ignore[operator]
        order = self._orders.save(order)

        logger.info("Order %s created (%s)", order["increment_id"], payment.method)
        return record_id(order)  # type: ignore[return-value]

    # --- Helpers --------------------------------------------------------------

    def _payment_record(self, payment: PaymentInfo) -> dict[str, Any]:
        data = payment.data
        record: dict[str, Any] = {
            "method": payment.method,
            "cc_type": data.get("cc_type") or data.get("type"),
            "cc_last4": str(data.get("cc_number") or "")[-4:] or None,
            "cc_exp_month": data.get("cc_exp_month"),
            "cc_exp_year": data.get("cc_exp_year"),
        }
        if payment.method == "creditcard":
            card: Record | None = self._vault.load(data.get("cc_vaulted"))  # type: ignore[arg-type]
            if card:
                record.update(
                    cc_type=card.get("type"),
                    cc_last4=card.get("last4"),
                    cc_exp_month=card.get("expiration_month"),
                    cc_exp_year=card.get("expiration_year"),
                )
        return record
