"""Money and quantities as they appear on carts and orders.

Both are immutable and compare by value. Building one from a bad value
raises ValidationError, so neither can hold a negative amount.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from functools import total_ordering

from storefront.domain.exceptions import ValidationError

_CENT = Decimal("0.01")
_NIL = Decimal("0")


@total_ordering
@dataclass(frozen=True)
class Money:
    """A non-negative storefront amount.

    Decimal keeps cart totals exact to the cent as the storefront displays
    them. Every price in the catalog is USD.
    """

    amount: Decimal
    currency: str = "USD"

    def __post_init__(self) -> None:
        if not isinstance(self.amount, Decimal):
            raise ValidationError(f"Money needs a Decimal amount, not {type(self.amount).__name__}")
        if self.amount < _NIL:
            raise ValidationError(f"{self.amount} is not a price: amounts cannot be negative")

    @classmethod
    def of(cls, amount: str | float | int | Decimal | None) -> Money:
        """Coerce a record value to Money; an unset price (``None``) is zero."""
        if amount is None:
            return ZERO
        try:
            return cls(Decimal(str(amount)))
        except (InvalidOperation, ValueError) as exc:
            raise ValidationError(f"Invalid money amount: {amount!r}") from exc

    def __add__(self, other: Money) -> Money:
        return self._with(self.amount + self._checked(other).amount)

    def __sub__(self, other: Money) -> Money:
        remainder = self.amount - self._checked(other).amount
        if remainder < _NIL:
            raise ValidationError(f"Taking {other} from {self} leaves a negative amount")
        return self._with(remainder)

    def __mul__(self, factor: int) -> Money:
        if isinstance(factor, bool) or not isinstance(factor, int):
            raise TypeError(f"Money scales by whole quantities only, not {type(factor).__name__}")
        return self._with(self.amount * factor)

    def __lt__(self, other: Money) -> bool:
        return self.amount < self._checked(other).amount

    def __bool__(self) -> bool:
        return self.amount != _NIL

    def clamp_sub(self, other: Money) -> Money:
        """Subtract, stopping at zero."""
        return self._with(max(self.amount - self._checked(other).amount, _NIL))

    def min(self, other: Money) -> Money:
        return other if other < self else self

    def as_float(self) -> float:
        """The amount rounded to the cent, for JSON bodies."""
        return float(self.amount.quantize(_CENT, rounding=ROUND_HALF_UP))

    def __str__(self) -> str:
        return f"${self.amount:.2f}"

    def _with(self, amount: Decimal) -> Money:
        return Money(amount, self.currency)

    def _checked(self, other: Money) -> Money:
        if other.currency != self.currency:
            raise ValidationError(f"{other.currency} amount mixed into a {self.currency} total")
        return other


ZERO = Money(_NIL)


@dataclass(frozen=True)
class Quantity:
    """How many units a line item holds.

    Zero is valid: posting it is how a client removes a line item.
    """

    value: int

    def __post_init__(self) -> None:
        if isinstance(self.value, bool) or not isinstance(self.value, int):
            raise ValidationError(f"Quantity must be an integer, got {type(self.value).__name__}")
        if self.value < 0:
            raise ValidationError("Quantity cannot be negative")

    @classmethod
    def parse(cls, raw: object) -> Quantity:
        """Accept ints, integral floats and digit strings as clients send them."""
        if isinstance(raw, str) and raw.strip().lstrip("-").isdigit():
            raw = int(raw.strip())
        elif isinstance(raw, float) and raw.is_integer():
            raw = int(raw)
        return cls(raw)  # type: ignore[arg-type]

    def __int__(self) -> int:
        return self.value

    def __str__(self) -> str:
        return str(self.value)
