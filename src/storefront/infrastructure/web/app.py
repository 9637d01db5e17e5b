"""FastAPI application: the HTTP face of the resources.

Routes come from the static route table. Each endpoint turns the incoming
request into a ``ResourceRequest``, runs the (synchronous) resource method
in the threadpool, and turns the ``ApiResponse`` back into a response.
"""

from __future__ import annotations

import logging
from collections.abc import Callable

from fastapi import Depends, FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import Response
from starlette.concurrency import run_in_threadpool

from storefront.application.dto import ApiResponse, ResourceRequest
from storefront.application.resources.auth import SESSION_HEADER
from storefront.application.routes import StaticRouter
from storefront.infrastructure.bootstrap import Container, build_container
from storefront.infrastructure.config import API_VERSION, get_settings
from storefront.infrastructure.web.dependencies import client_credentials
from storefront.infrastructure.web.exception_handlers import register_exception_handlers

logger = logging.getLogger(__name__)

SESSION_COOKIE = "api_session"

Operation = Callable[..., ApiResponse]


def operations(container: Container) -> list[tuple[str, str, str, Operation]]:
    """(resource, route, HTTP method, handler) for every endpoint."""
    c = container
    return [
        ("root", "root", "GET", c.root.root),
        ("event", "collection", "GET", c.events.get_event_collection),
        ("event", "entity", "GET", c.events.get_event_entity),
        ("product", "event_collection", "GET", c.products.get_event_product_collection),
        ("product", "collection", "GET", c.products.get_product_collection),
        ("product", "entity", "GET", c.products.get_product_entity),
        ("user", "collection", "POST", c.users.create_user_entity),
        ("user", "entity", "GET", c.users.get_user_entity),
        ("user", "entity", "PUT", c.users.update_user_entity),
        ("user", "entity", "DELETE", c.users.delete_user_entity),
        ("address", "user_collection", "GET", c.addresses.get_user_addresses),
        ("address", "user_collection", "POST", c.addresses.create_entity),
        ("address", "entity", "GET", c.addresses.get_entity),
        ("address", "entity", "PUT", c.addresses.update_entity),
        ("address", "entity", "DELETE", c.addresses.delete_entity),
        ("creditcard", "user_collection", "GET", c.credit_cards.get_user_credit_cards),
        ("creditcard", "user_collection", "POST", c.credit_cards.create_entity),
        ("creditcard", "entity", "GET", c.credit_cards.get_entity),
        ("creditcard", "entity", "DELETE", c.credit_cards.delete_entity),
        ("order", "user_collection", "GET", c.orders.get_user_orders),
        ("order", "user_collection", "POST", c.orders.create_order_entity),
        ("order", "entity", "GET", c.orders.get_order_entity),
        ("auth", "session", "POST", c.auth.login),
        ("auth", "session", "DELETE", c.auth.logout),
    ]


async def to_resource_request(request: Request) -> ResourceRequest:
    return ResourceRequest(
        path=request.url.path,
        query=dict(request.query_params),
        headers=dict(request.headers),
        body=await request.body(),
        session=request.headers.get(SESSION_HEADER) or request.cookies.get(SESSION_COOKIE),
    )


def to_response(result: ApiResponse) -> Response:
    headers = dict(result.headers)
    token = headers.pop(SESSION_HEADER, None)
    if token:
        headers[SESSION_HEADER] = token

    if result.body is None:
        response = Response(status_code=result.status, headers=headers)
    else:
        response = Response(
            content=result.body,
            status_code=result.status,
            headers=headers,
            media_type="application/json",
        )

    if token:
        response.set_cookie(SESSION_COOKIE, token, httponly=True)
    elif token is not None:
        response.delete_cookie(SESSION_COOKIE)
    return response


def _endpoint(operation: Operation, takes_id: bool) -> Callable:
    async def endpoint(request: Request) -> Response:
        resource_request = await to_resource_request(request)
        args = (request.path_params["id"],) if takes_id else ()
        result = await run_in_threadpool(operation, resource_request, *args)
        return to_response(result)

    return endpoint


def create_app(container: Container | None = None) -> FastAPI:
    container = container or build_container(get_settings())
    settings = container.settings

    app = FastAPI(
        title="Storefront API",
        version=API_VERSION,
        docs_url="/docs" if settings.is_development else None,
        redoc_url=None,
    )
    app.state.container = container

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["*"],
        allow_headers=["Authorization", "Content-Type", SESSION_HEADER],
        expose_headers=[SESSION_HEADER, "X-Api-Error", "Location"],
    )

    @app.middleware("http")
    async def api_headers(request: Request, call_next):
        response = await call_next(request)
        response.headers["X-Api-Environment"] = settings.ENV
        response.headers["X-Api-Version"] = API_VERSION
        return response

    register_exception_handlers(app)

    router = StaticRouter(base_path=settings.BASE_PATH)
    verify_client = client_credentials(settings.CLIENT_CREDENTIALS)
    for resource, route, method, operation in operations(container):
        path = router.path_for(resource, route)
        app.add_api_route(
            path,
            _endpoint(operation, takes_id="{id}" in path),
            methods=[method],
            name=f"{resource}.{route}.{method.lower()}",
            dependencies=[Depends(verify_client)],
        )

    logger.info("Storefront API ready (%s, %d routes)", settings.ENV, len(app.routes))
    return app
