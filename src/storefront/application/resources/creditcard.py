"""CreditCard resource: payment methods stored for future purchases.

Cards are merged from the payment vault and the legacy subscription
profiles. New cards are verified with a small authorization against the
payment gateway before the returned token is vaulted.
"""

from __future__ import annotations

import logging
from typing import Any

from storefront.application.card_sources import (
    CardSource,
    LegacyProfileCardSource,
    VaultCardSource,
)
from storefront.application.dto import ApiResponse, ResourceRequest
from storefront.application.errors import ClientInputError, NotFoundError, UpstreamError
from storefront.application.projection import Alias, Link, fields
from storefront.application.resources.address import AddressResource
from storefront.application.resources.base import (
    REL,
    Resource,
    ResourceContext,
    entity_id_from_url,
    first_href,
    parse_id,
)
from storefront.domain.exceptions import DomainException, PaymentGatewayError
from storefront.domain.model.record import Record, record_id
from storefront.domain.repository.payment_gateway import (
    AuthorizationRequest,
    CardDetails,
    PaymentGateway,
)

logger = logging.getLogger(__name__)

VERIFICATION_AMOUNT = 100
EMPTY_TRANSACTION = "Received an empty transaction ID from the payment gateway"

# card types the gateway spells differently
_GATEWAY_TYPES = {"AE": "AX"}


class CreditCardResource(Resource):
    fields = fields(
        "type",
        Alias("cc_last4", "last4"),
        Alias("cc_exp_year", "expiration_year"),
        Alias("cc_exp_month", "expiration_month"),
        "address",
    )
    links = (
        Link("self", href="/creditcard/{vault_id}"),
        Link(f"{REL}/entity/user", href="/user/{customer_id}"),
    )

    def __init__(
        self,
        context: ResourceContext,
        vault: VaultCardSource,
        legacy: LegacyProfileCardSource,
        addresses: AddressResource,
        gateway: PaymentGateway,
    ) -> None:
        super().__init__(context)
        self._vault = vault
        self._legacy = legacy
        self._sources: tuple[CardSource, ...] = (vault, legacy)
        self._addresses = addresses
        self._gateway = gateway

    # --- Operations -----------------------------------------------------------

    def get_user_credit_cards(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        results = [
            self.format_card(card, customer)
            for source in self._sources
            for card in source.for_customer(record_id(customer))  # type: ignore[arg-type]
        ]
        return self._ok(request, results)

    def create_entity(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        data = request.json()
        for required in ("cc_number", "cc_exp_month", "cc_exp_year", "type"):
            if not data.get(required):
                raise ClientInputError(
                    f"Entity Validation Error: Missing required field '{required}'"
                )

        address = self._billing_address(data, customer)
        card = CardDetails(
            number=str(data["cc_number"]),
            exp_date=str(data["cc_exp_month"]).zfill(2) + str(data["cc_exp_year"])[-2:],
            cvv=str(data.get("cc_cid") or ""),
            type=_GATEWAY_TYPES.get(data["type"], data["type"]),
        )
        auth = AuthorizationRequest(
            order_id=str(record_id(customer)),
            amount=VERIFICATION_AMOUNT,
            card=card,
            bill_to=self._bill_to(address),
        )

        try:
            response = self._gateway.authorize(auth)
        except PaymentGatewayError as exc:
            logger.error("Card authorization failed for %s", card.masked_number, exc_info=True)
            raise UpstreamError(exc) from exc

        if not response.approved:
            logger.info("Card %s declined: %s", card.masked_number, response.message)
            if response.message:
                raise ClientInputError(response.message)
            raise UpstreamError()

        if not response.transaction_id:
            logger.error(
                "%s (card %s, response %s)",
                EMPTY_TRANSACTION,
                card.masked_number,
                response.response_code,
            )
            raise UpstreamError(EMPTY_TRANSACTION)

        if card.type != "VI":
            try:
                self._gateway.reverse_authorization(response.transaction_id, VERIFICATION_AMOUNT)
            except PaymentGatewayError:
                logger.warning(
                    "Could not reverse authorization %s", response.transaction_id, exc_info=True
                )

        stored = self._vault_card(customer, data, response.token, response.bin, address)
        return self._created(self.format_card(stored, customer))

    def get_entity(self, request: ResourceRequest, card_id: Any) -> ApiResponse:
        card = self._find(card_id)
        customer = self._authorize(request, card.get("customer_id"))
        return self._ok(request, self.format_card(card, customer))

    def delete_entity(self, request: ResourceRequest, card_id: Any) -> ApiResponse:
        card = self._find(card_id)
        self._authorize(request, card.get("customer_id"))
        source = self._vault if card["source"] == self._vault.name else self._legacy
        try:
            source.delete(card)
        except DomainException as exc:
            logger.error("Could not delete card %s", card_id, exc_info=True)
            raise UpstreamError(exc) from exc
        return self._no_content()

    # --- Representation -------------------------------------------------------

    def format_card(self, card: Record, customer: Record) -> dict[str, Any]:
        data = dict(card)
        address_id = record_id(card, "address_id")
        address = self._addresses.address_record(address_id) if address_id else None
        if address:
            embedded = self._addresses.format_address(address, customer)
            for hidden in ("links", "default_billing", "default_shipping"):
                embedded.pop(hidden, None)
            data["address"] = embedded
        return self._format(data)

    # --- Helpers --------------------------------------------------------------

    def _find(self, card_id: Any) -> Record:
        card_id = parse_id(card_id)
        for source in self._sources:
            card = source.load(card_id)
            if card:
                return card
        raise NotFoundError()

    def _billing_address(
        self, data: dict[str, Any], customer: Record
    ) -> Record:
        if data.get("links"):
            url = first_href(data)
            address = self._addresses.address_record(entity_id_from_url(url))
            if not address or record_id(address, "customer_id") != record_id(customer):
                raise ClientInputError(f"Invalid Resource URL {url}")
            return address
        if isinstance(data.get("address"), dict):
            return self._addresses.create_for(customer, data["address"])
        raise ClientInputError("A billing address must be specified.")

    @staticmethod
    def _bill_to(address: Record) -> dict[str, str]:
        bill_to = {
            "name": f"{address.get('firstname') or ''} {address.get('lastname') or ''}".strip(),
            "city": address.get("city") or "",
            "state": address.get("region") or "",
            "zip": address.get("postcode") or "",
            "country": "US",
        }
        street = address.get("street") or ""
        lines = street.split("\n") if isinstance(street, str) else list(street)
        for number, line in enumerate(lines, start=1):
            bill_to[f"addressLine{number}"] = line
        return bill_to

    def _vault_card(
        self,
        customer: Record,
        data: dict[str, Any],
        token: str | None,
        bin_: str | None,
        address: Record,
    ) -> Record:
        customer_id = record_id(customer)
        try:
            if token:
                existing = self._vault.find_by_token(customer_id, token)  # type: ignore[arg-type]
                if existing:
                    return existing
            return self._vault.save(
                {
                    "token": token,
                    "bin": bin_,
                    "customer_id": customer_id,
                    "type": data["type"],
                    "last4": str(data["cc_number"])[-4:],
                    "expiration_month": data["cc_exp_month"],
                    "expiration_year": data["cc_exp_year"],
                    "is_visible": True,
                    "address_id": record_id(address),
                }
            )
        except DomainException as exc:
            logger.error("Could not vault card for customer #%s", customer_id, exc_info=True)
            raise UpstreamError(exc) from exc
