"""JSON-file-backed implementation of CartRepository."""

from __future__ import annotations

import json
import threading
from datetime import datetime
from decimal import Decimal
from pathlib import Path

from storefront.domain.exceptions import PersistenceError
from storefront.domain.model.cart import Cart, CartLineItem
from storefront.domain.model.product import ProductType
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.cart_repository import CartRepository


class JsonCartRepository(CartRepository):

    def __init__(self, file_path: Path) -> None:
        self._file_path = file_path
        self._lock = threading.Lock()
        self._ensure_file()

    # --- CartRepository interface ---------------------------------------------

    def get_for_session(self, session_id: str, customer_id: int | None) -> Cart:
        raw = self._load_raw().get(session_id)
        if raw is None:
            return Cart(session_id=session_id, customer_id=customer_id)
        cart = self._to_domain(raw)
        if cart.customer_id is None:
            cart.customer_id = customer_id
        return cart

    def save(self, cart: Cart) -> None:
        with self._lock:
            carts = self._load_raw()
            carts[cart.session_id] = self._to_raw(cart)
            self._persist_raw(carts)

    def discard(self, session_id: str) -> None:
        with self._lock:
            carts = self._load_raw()
            if carts.pop(session_id, None) is not None:
                self._persist_raw(carts)

    # --- Serialization --------------------------------------------------------

    @staticmethod
    def _money(value: Money) -> str:
        return str(value.amount)

    @classmethod
    def _to_raw(cls, cart: Cart) -> dict:
        return {
            "session_id": cart.session_id,
            "customer_id": cart.customer_id,
            "items": [
                {
                    "item_id": item.item_id,
                    "product_id": item.product_id,
                    "name": item.name,
                    "product_type": item.product_type.value,
                    "unit_price": cls._money(item.unit_price),
                    "list_price": cls._money(item.list_price),
                    "currency": item.unit_price.currency,
                    "qty": item.qty,
                    "weight": item.weight,
                    "selection": {str(k): v for k, v in item.selection.items()},
                    "attributes": item.attributes,
                }
                for item in cart.items
            ],
            "shipping_address": cart.shipping_address,
            "billing_address": cart.billing_address,
            "shipping_method": cart.shipping_method,
            "shipping_amount": cls._money(cart.shipping_amount),
            "tax_amount": cls._money(cart.tax_amount),
            "discount_amount": cls._money(cart.discount_amount),
            "coupon_code": cart.coupon_code,
            "use_credit": cart.use_credit,
            "credit_available": cls._money(cart.credit_available),
            "countdown_started_at": (
                cart.countdown_started_at.isoformat() if cart.countdown_started_at else None
            ),
            "next_item_id": cart.next_item_id,
        }

    @staticmethod
    def _to_domain(raw: dict) -> Cart:
        items = [
            CartLineItem(
                item_id=i["item_id"],
                product_id=i["product_id"],
                name=i.get("name", ""),
                product_type=ProductType(i.get("product_type", "simple")),
                unit_price=Money(Decimal(i["unit_price"]), i.get("currency", "USD")),
                list_price=Money(Decimal(i["list_price"]), i.get("currency", "USD")),
                qty=i["qty"],
                weight=i.get("weight"),
                selection={int(k): v for k, v in (i.get("selection") or {}).items()},
                attributes=i.get("attributes") or {},
            )
            for i in raw.get("items", [])
        ]
        started = raw.get("countdown_started_at")
        return Cart(
            session_id=raw["session_id"],
            customer_id=raw.get("customer_id"),
            items=items,
            shipping_address=raw.get("shipping_address"),
            billing_address=raw.get("billing_address"),
            shipping_method=raw.get("shipping_method"),
            shipping_amount=Money.of(raw.get("shipping_amount")),
            tax_amount=Money.of(raw.get("tax_amount")),
            discount_amount=Money.of(raw.get("discount_amount")),
            coupon_code=raw.get("coupon_code"),
            use_credit=bool(raw.get("use_credit")),
            credit_available=Money.of(raw.get("credit_available")),
            countdown_started_at=datetime.fromisoformat(started) if started else None,
            next_item_id=raw.get("next_item_id", len(items) + 1),
        )

    # --- File helpers ---------------------------------------------------------

    def _load_raw(self) -> dict[str, dict]:
        try:
            return json.loads(self._file_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            raise PersistenceError(f"Cannot read {self._file_path}: {exc}") from exc

    def _persist_raw(self, carts: dict[str, dict]) -> None:
        try:
            self._file_path.write_text(
                json.dumps(carts, indent=2, default=str) + "\n", encoding="utf-8"
            )
        except OSError as exc:
            raise PersistenceError(f"Cannot write {self._file_path}: {exc}") from exc

    def _ensure_file(self) -> None:
        if not self._file_path.exists():
            self._file_path.parent.mkdir(parents=True, exist_ok=True)
            self._file_path.write_text("{}", encoding="utf-8")
