"""Auth resource: logging customers in and out."""

from __future__ import annotations

import logging

from storefront.application.dto import ApiResponse, ResourceRequest, to_json
from storefront.application.errors import AuthorizationError
from storefront.application.projection import Link
from storefront.application.resources.base import REL, Resource

logger = logging.getLogger(__name__)

SESSION_HEADER = "X-Api-Session"
INVALID_CREDENTIALS = "Invalid login credentials."


class AuthResource(Resource):
    links = (Link(f"{REL}/entity/user", href="/user/{entity_id}"),)

    def login(self, request: ResourceRequest) -> ApiResponse:
        sessions = self._ctx.sessions

        token = request.session
        customer_id = sessions.customer_for(token) if token else None

        if customer_id is None:
            data = request.json()
            email, password = data.get("email"), data.get("password")
            if not email or not password:
                raise AuthorizationError(INVALID_CREDENTIALS)
            customer_id = sessions.authenticate(str(email), str(password))
            if customer_id is None:
                logger.info("Failed login for %s", email)
                raise AuthorizationError(INVALID_CREDENTIALS)
            token = sessions.open(customer_id)

        customer = self._ctx.customers.load(customer_id)
        if customer is None:
            sessions.close(token)  # type: ignore[arg-type]
            raise AuthorizationError(INVALID_CREDENTIALS)

        body = self._format(dict(customer), fields=(), links=self.links)
        return ApiResponse(status=200, body=to_json(body), headers={SESSION_HEADER: token})  # type: ignore[dict-item]

    def logout(self, request: ResourceRequest) -> ApiResponse:
        if request.session:
            self._ctx.sessions.close(request.session)
        return ApiResponse(status=204, headers={SESSION_HEADER: ""})
