"""Abstract payment gateway (card authorization and tokenization)."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass, field

APPROVED = "000"


@dataclass(frozen=True)
class CardDetails:
    number: str
    exp_date: str  # MMYY
    cvv: str
    type: str

    @property
    def masked_number(self) -> str:
        return "X" * 12 + self.number[-4:]


@dataclass(frozen=True)
class AuthorizationRequest:
    order_id: str
    amount: int  # in cents
    card: CardDetails
    bill_to: dict[str, str] = field(default_factory=dict)
    order_source: str = "ecommerce"


@dataclass(frozen=True)
class AuthorizationResponse:
    response_code: str
    message: str | None = None
    transaction_id: str | None = None
    token: str | None = None
    bin: str | None = None

    @property
    def approved(self) -> bool:
        return self.response_code == APPROVED


class PaymentGateway(ABC):

    @abstractmethod
    def authorize(self, request: AuthorizationRequest) -> AuthorizationResponse:
        """Authorize (and tokenize) a card. Raises PaymentGatewayError on
        transport or protocol failure."""

    @abstractmethod
    def reverse_authorization(self, transaction_id: str, amount: int) -> None:
        """Release a previous authorization."""
