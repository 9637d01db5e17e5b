"""PaymentGateway over a JSON HTTP API.

``POST /authorize`` takes the authorization request and answers with
``{"response", "message", "txn_id", "token", "bin"}``; ``POST /reverse``
releases an authorization.
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from storefront.domain.exceptions import PaymentGatewayError
from storefront.domain.repository.payment_gateway import (
    AuthorizationRequest,
    AuthorizationResponse,
    PaymentGateway,
)

logger = logging.getLogger(__name__)


class HttpPaymentGateway(PaymentGateway):

    def __init__(self, base_url: str, timeout: float = 10.0, client: httpx.Client | None = None) -> None:
        self._client = client or httpx.Client(base_url=base_url, timeout=timeout)
        self._headers = {"Content-Type": "application/json"}

    def authorize(self, request: AuthorizationRequest) -> AuthorizationResponse:
        payload = {
            "orderId": request.order_id,
            "amount": request.amount,
            "orderSource": request.order_source,
            "billToAddress": request.bill_to,
            "card": {
                "number": request.card.number,
                "expDate": request.card.exp_date,
                "cardValidationNum": request.card.cvv,
                "type": request.card.type,
            },
        }
        data = self._post("/authorize", payload)
        return AuthorizationResponse(
            response_code=str(data.get("response", "")),
            message=data.get("message"),
            transaction_id=_optional_str(data.get("txn_id")),
            token=_optional_str(data.get("token")),
            bin=_optional_str(data.get("bin")),
        )

    def reverse_authorization(self, transaction_id: str, amount: int) -> None:
        self._post("/reverse", {"txn_id": transaction_id, "amount": amount})

    def close(self) -> None:
        self._client.close()

    def _post(self, path: str, payload: dict[str, Any]) -> dict[str, Any]:
        logger.debug("POST %s", path)
        try:
            response = self._client.post(path, json=payload, headers=self._headers)
            response.raise_for_status()
            data = response.json()
        except httpx.HTTPError as exc:
            raise PaymentGatewayError(f"Payment gateway request to {path} failed: {exc}") from exc
        except ValueError as exc:
            raise PaymentGatewayError(f"Payment gateway sent invalid JSON from {path}") from exc
        if not isinstance(data, dict):
            raise PaymentGatewayError(f"Unexpected payment gateway response from {path}")
        return data


def _optional_str(value: Any) -> str | None:
    return None if value in (None, "") else str(value)
