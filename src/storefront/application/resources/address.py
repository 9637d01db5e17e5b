"""Address resource: a customer's postal addresses."""

from __future__ import annotations

from typing import Any

from storefront.application.card_sources import LegacyProfileCardSource
from storefront.application.dto import ApiResponse, ResourceRequest
from storefront.application.errors import ClientInputError
from storefront.application.projection import Alias, Link, fields
from storefront.application.resources.base import REL, Resource, ResourceContext
from storefront.domain.model.record import Record, is_truthy, record_id
from storefront.domain.repository.record_repository import RecordRepository
from storefront.domain.repository.region_directory import RegionDirectory

INVALID_STATE = "Validation Error: Invalid value in 'state' field."

ADDRESS_FIELDS = fields(
    "firstname",
    "lastname",
    "company",
    "street",
    "city",
    Alias("state", "region"),
    Alias("zip", "postcode"),
    Alias("country", "country_id"),
    "telephone",
    "fax",
    "default_billing",
    "default_shipping",
)

ADDRESS_LINKS = (
    Link("self", href="/address/{entity_id}"),
    Link(f"{REL}/entity/user", href="/user/{parent_id}"),
)


class AddressResource(Resource):
    fields = ADDRESS_FIELDS
    links = ADDRESS_LINKS

    def __init__(
        self,
        context: ResourceContext,
        addresses: RecordRepository,
        regions: RegionDirectory,
        legacy_cards: LegacyProfileCardSource,
    ) -> None:
        super().__init__(context, addresses)
        self._regions = regions
        self._legacy_cards = legacy_cards

    # --- Operations -----------------------------------------------------------

    def get_user_addresses(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        results = [
            self.format_address(address, customer)
            for address in self._query({"customer_id": record_id(customer)})
            if not self._legacy_cards.owns_address(record_id(address))  # type: ignore[arg-type]
        ]
        return self._ok(request, results)

    def create_entity(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        data = request.json()
        address = self._write({"customer_id": record_id(customer)}, data, customer)
        return self._created(self.format_address(address, customer))

    def get_entity(self, request: ResourceRequest, entity_id: Any) -> ApiResponse:
        address = self._load(entity_id)
        customer = self._authorize(request, address.get("customer_id"))
        return self._ok(request, self.format_address(address, customer))

    def update_entity(self, request: ResourceRequest, entity_id: Any) -> ApiResponse:
        address = self._load(entity_id)
        customer = self._authorize(request, address.get("customer_id"))
        data = request.json()
        address = self._write(address, data, customer)
        return self._ok(request, self.format_address(address, customer))

    def delete_entity(self, request: ResourceRequest, entity_id: Any) -> ApiResponse:
        address = self._load(entity_id)
        self._authorize(request, address.get("customer_id"))
        self._delete(record_id(address))  # type: ignore[arg-type]
        return self._no_content()

    # --- Collaboration with other resources -----------------------------------

    def address_record(self, address_id: int) -> Record | None:
        address = self._repository.load(address_id)  # type: ignore[union-attr]
        return dict(address) if address else None

    def create_for(self, customer: Record, data: dict[str, Any]) -> Record:
        """Save an inline address (e.g. a card's billing address)."""
        return self._write({"customer_id": record_id(customer)}, data, customer)

    # --- Representation -------------------------------------------------------

    def format_address(self, address: Record, customer: Record) -> dict[str, Any]:
        address_id = record_id(address)
        street = address.get("street")
        data = {
            **address,
            "street": street.split("\n") if isinstance(street, str) else street,
            "default_billing": address_id is not None
            and record_id(customer, "default_billing") == address_id,
            "default_shipping": address_id is not None
            and record_id(customer, "default_shipping") == address_id,
            "parent_id": record_id(customer),
        }
        return self._format(data)

    # --- Writes ---------------------------------------------------------------

    def _write(self, address: Record, data: dict[str, Any], customer: Record) -> Record:
        data = dict(data)
        state = data.get("state", address.get("region"))
        country = data.get("country", address.get("country_id"))
        region_id = self._regions.resolve(str(state), str(country)) if state and country else None
        if region_id is None:
            raise ClientInputError(INVALID_STATE)
        address["region_id"] = region_id

        if isinstance(data.get("street"), list):
            data["street"] = "\n".join(str(line) for line in data["street"])

        defaults = {
            key: data.pop(key) for key in ("default_billing", "default_shipping") if key in data
        }
        saved = self._populate(address, data)

        if defaults:
            for key, flag in defaults.items():
                if is_truthy(flag):
                    customer[key] = record_id(saved)
                elif record_id(customer, key) == record_id(saved):
                    customer[key] = None
            customer.update(self._save(customer, self._ctx.customers))
        return saved
