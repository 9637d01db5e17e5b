"""Cart aggregate: the mutable pre-order.

The Cart owns its line items. Quantity and membership invariants are
enforced here; prices, shipping rates and order submission belong to the
checkout collaborator.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timedelta

from storefront.domain.exceptions import ValidationError
from storefront.domain.model.product import ProductType, list_price, sale_price
from storefront.domain.model.record import Record, record_id
from storefront.domain.model.value_objects import ZERO, Money, Quantity


@dataclass
class CartLineItem:
    """A product (or one variant of it) and how many the customer wants.

    ``selection`` is the variant signature: configurable attribute id to
    option value index. Two requests for the same configurable product
    land on the same line item only when their signatures are equal.
    """

    item_id: int
    product_id: int
    name: str
    product_type: ProductType
    unit_price: Money
    list_price: Money
    qty: int
    weight: float | None = None
    selection: dict[int, int] = field(default_factory=dict)
    attributes: dict[str, str] = field(default_factory=dict)

    @property
    def line_total(self) -> Money:
        return self.unit_price * self.qty

    @property
    def savings(self) -> Money:
        return self.list_price.clamp_sub(self.unit_price) * self.qty

    @property
    def is_virtual(self) -> bool:
        return self.product_type is ProductType.VIRTUAL


# ---------------------------------------------------------------------------
# Constants for business rules
# ---------------------------------------------------------------------------
MAX_LINE_ITEMS = 50


@dataclass
class Cart:
    """Aggregate root for a session's shopping cart.

    The ``__init__`` is intentionally simple so the repository can
    reconstitute persisted carts without re-validating.
    """

    session_id: str
    customer_id: int | None = None
    items: list[CartLineItem] = field(default_factory=list)
    shipping_address: Record | None = None
    billing_address: Record | None = None
    shipping_method: str | None = None
    shipping_amount: Money = ZERO
    tax_amount: Money = ZERO
    discount_amount: Money = ZERO
    coupon_code: str | None = None
    use_credit: bool = False
    credit_available: Money = ZERO
    countdown_started_at: datetime | None = None
    next_item_id: int = 1

    # --- Lookups --------------------------------------------------------------

    @property
    def is_virtual(self) -> bool:
        """True when nothing in the cart needs to be shipped."""
        return bool(self.items) and all(item.is_virtual for item in self.items)

    def find_item(self, item_id: int) -> CartLineItem | None:
        for item in self.items:
            if item.item_id == item_id:
                return item
        return None

    def find_match(
        self, product_id: int, product_type: ProductType, selection: dict[int, int]
    ) -> CartLineItem | None:
        """Find the line item a product request refers to, if any.

        Simple and virtual products match by product id; configurable and
        bundle products additionally need an equal variant signature.
        """
        for item in self.items:
            if item.product_id != product_id:
                continue
            if product_type in (ProductType.SIMPLE, ProductType.VIRTUAL):
                return item
            if item.selection == selection:
                return item
        return None

    # --- Mutations ------------------------------------------------------------

    def add_item(
        self,
        product: Record,
        qty: Quantity,
        selection: dict[int, int] | None = None,
        attributes: dict[str, str] | None = None,
    ) -> CartLineItem:
        """Add a new line item for ``product``."""
        if qty.value <= 0:
            raise ValidationError("Quantity must be positive")
        if len(self.items) >= MAX_LINE_ITEMS:
            raise ValidationError(f"Maximum {MAX_LINE_ITEMS} items per cart")

        product_id = record_id(product)
        if product_id is None:
            raise ValidationError("Cannot add an unsaved product to the cart")

        item = CartLineItem(
            item_id=self.next_item_id,
            product_id=product_id,
            name=product.get("name") or "",
            product_type=ProductType.of(product),
            unit_price=sale_price(product),
            list_price=list_price(product),
            qty=qty.value,
            weight=product.get("weight"),
            selection=dict(selection or {}),
            attributes=dict(attributes or {}),
        )
        self.next_item_id += 1
        self.items.append(item)
        return item

    def update_quantities(self, updates: dict[int, int]) -> None:
        """Apply a batch of absolute quantity updates atomically.

        Every update is validated before any is applied, so a rejected
        batch leaves the cart untouched. A quantity of zero removes the
        line item.
        """
        for item_id, qty in updates.items():
            item = self.find_item(item_id)
            if item is None:
                raise ValidationError(f"Cart item #{item_id} no longer exists")
            Quantity(qty)
            if item.is_virtual and qty > 1:
                raise ValidationError(
                    "The quantity for a virtual product item cannot be modified."
                )

        for item_id, qty in updates.items():
            if qty == 0:
                self.remove_item(item_id)
            else:
                self.find_item(item_id).qty = qty  # type: ignore[union-attr]

    def remove_item(self, item_id: int) -> None:
        if self.find_item(item_id) is None:
            raise ValidationError(f"Cart item #{item_id} no longer exists")
        self.items = [item for item in self.items if item.item_id != item_id]

    def start_countdown(self, now: datetime) -> None:
        self.countdown_started_at = now

    # --- Computed properties --------------------------------------------------

    @property
    def subtotal(self) -> Money:
        result = ZERO
        for item in self.items:
            result = result + item.line_total
        return result

    @property
    def savings_amount(self) -> Money:
        result = ZERO
        for item in self.items:
            result = result + item.savings
        return result

    @property
    def _total_before_credit(self) -> Money:
        return (
            self.subtotal.clamp_sub(self.discount_amount)
            + self.shipping_amount
            + self.tax_amount
        )

    @property
    def credit_used(self) -> Money:
        if not self.use_credit:
            return ZERO
        return self.credit_available.min(self._total_before_credit)

    @property
    def grand_total(self) -> Money:
        return self._total_before_credit.clamp_sub(self.credit_used)

    @property
    def total_qty(self) -> int:
        return sum(item.qty for item in self.items)

    def expires_in(self, shelf_life: int, now: datetime) -> int | None:
        """Seconds left before the cart's reservation lapses (advisory)."""
        if not self.items or self.countdown_started_at is None:
            return None
        deadline = self.countdown_started_at + timedelta(seconds=shelf_life)
        return int((deadline - now).total_seconds())
