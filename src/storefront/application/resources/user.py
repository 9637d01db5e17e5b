"""User resource: customer accounts."""

from __future__ import annotations

import logging
from typing import Any

from storefront.application.dto import ApiResponse, ResourceRequest
from storefront.application.errors import ClientInputError, UpstreamError
from storefront.application.projection import Link, LinkSpec, fields
from storefront.application.resources.base import REL, Resource, ResourceContext
from storefront.domain.exceptions import DomainException
from storefront.domain.model.record import Record, record_id
from storefront.domain.model.value_objects import Money
from storefront.domain.repository.record_repository import RecordRepository

logger = logging.getLogger(__name__)

REQUIRED_ON_CREATE = ("email", "firstname", "lastname", "password")
DUPLICATE_EMAIL = "Entity Validation Error: This customer email already exists"

USER_LINKS = (
    Link("self", href="/user/{entity_id}"),
    Link(f"{REL}/collection/address", href="/user/{entity_id}/address"),
    Link(f"{REL}/collection/order", href="/user/{entity_id}/order"),
    Link(f"{REL}/collection/creditcard", href="/user/{entity_id}/creditcard"),
)


class UserResource(Resource):
    fields = fields(
        "email",
        "firstname",
        "lastname",
        "credit",
        "invitation_url",
        "facebook_uid",
    )
    links = USER_LINKS

    def __init__(self, context: ResourceContext) -> None:
        super().__init__(context, context.customers)

    @property
    def customers(self) -> RecordRepository:
        return self._ctx.customers

    # --- Operations -----------------------------------------------------------

    def create_user_entity(self, request: ResourceRequest) -> ApiResponse:
        data = request.json()
        missing = [name for name in REQUIRED_ON_CREATE if not data.get(name)]
        if missing:
            raise ClientInputError(
                f"Entity Validation Error: Missing required field '{missing[0]}'"
            )
        self._assert_email_available(data["email"])

        password = data.pop("password")
        data.pop("entity_id", None)
        customer = self._populate({}, data)

        try:
            self._ctx.sessions.register(record_id(customer), customer["email"], password)  # type: ignore[arg-type]
        except DomainException as exc:
            logger.error("Could not register credentials for %s", customer["email"], exc_info=True)
            raise UpstreamError(exc) from exc

        logger.info("Created customer #%s", record_id(customer))
        return self._created(self.format_user(customer))

    def get_user_entity(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        return self._ok(request, self.format_user(customer))

    def update_user_entity(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        data = request.json()
        for protected in ("entity_id", "password", "reward_balance"):
            data.pop(protected, None)

        old_email = customer.get("email")
        new_email = data.get("email", old_email)
        if new_email != old_email:
            if not new_email:
                raise ClientInputError("Entity Validation Error: Missing required field 'email'")
            self._assert_email_available(new_email, record_id(customer))

        customer = self._populate(customer, data)

        if old_email and new_email != old_email:
            try:
                self._ctx.sessions.rename(old_email, new_email)
            except DomainException as exc:
                logger.error("Could not move credentials to %s", new_email, exc_info=True)
                raise UpstreamError(exc) from exc
        return self._ok(request, self.format_user(customer))

    def delete_user_entity(self, request: ResourceRequest, user_id: Any) -> ApiResponse:
        customer = self._authorize(request, user_id)
        self._delete(record_id(customer))  # type: ignore[arg-type]
        if request.session:
            self._ctx.sessions.close(request.session)
        return self._no_content()

    def _assert_email_available(self, email: str, owner: int | None = None) -> None:
        for other in self.customers.query({"email": email}):
            if record_id(other) != owner:
                raise ClientInputError(DUPLICATE_EMAIL)

    # --- Representation -------------------------------------------------------

    def format_user(self, customer: Record, links: LinkSpec | None = None) -> dict[str, Any]:
        data = {
            **customer,
            "credit": Money.of(customer.get("reward_balance")).as_float(),
            "invitation_url": f"{self._ctx.config.web_url.rstrip('/')}/invite/{record_id(customer)}",
        }
        return self._format(data, links=links)
