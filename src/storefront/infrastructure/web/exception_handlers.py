"""
Exception handlers for the FastAPI application.

Errors never carry a body: the status code says what happened and the
``X-Api-Error`` header says why.
"""

import logging

from fastapi import FastAPI, Request
from fastapi.responses import Response
from starlette.exceptions import HTTPException as StarletteHTTPException

from storefront.application.errors import WebApplicationError

logger = logging.getLogger(__name__)

ERROR_HEADER = "X-Api-Error"
INTERNAL_ERROR = "Internal server error"


def error_response(status_code: int, message: str, headers: dict[str, str] | None = None) -> Response:
    merged = dict(headers or {})
    merged[ERROR_HEADER] = " ".join(message.splitlines()).strip()
    return Response(content=b"", status_code=status_code, headers=merged)


async def web_application_error_handler(request: Request, exc: Exception) -> Response:
    """Turn a resource's WebApplicationError into its status and header."""
    if not isinstance(exc, WebApplicationError):
        return await unhandled_exception_handler(request, exc)
    if exc.status_code >= 500:
        logger.error("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    else:
        logger.info("%s %s -> %s: %s", request.method, request.url.path, exc.status_code, exc.message)
    return error_response(exc.status_code, exc.message)


async def http_exception_handler(request: Request, exc: Exception) -> Response:
    """Unknown routes, wrong methods and client authentication failures."""
    if not isinstance(exc, StarletteHTTPException):
        return await unhandled_exception_handler(request, exc)
    return error_response(exc.status_code, str(exc.detail), exc.headers)


async def unhandled_exception_handler(request: Request, exc: Exception) -> Response:
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(500, INTERNAL_ERROR)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(WebApplicationError, web_application_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(Exception, unhandled_exception_handler)
