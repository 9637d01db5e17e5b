"""HTTP-facing errors raised by resources.

A WebApplicationError forces an immediate response with its status code
and a single-line message in the ``X-Api-Error`` header.
"""

from __future__ import annotations


class WebApplicationError(Exception):
    status_code = 500

    def __init__(self, message: str | Exception | None = None, status_code: int | None = None) -> None:
        if status_code is not None:
            self.status_code = status_code
        if isinstance(message, Exception):
            message = str(message)
        self.message = " ".join((message or "").splitlines()).strip()
        super().__init__(self.message)


class ClientInputError(WebApplicationError):
    status_code = 400


class AuthorizationError(WebApplicationError):
    status_code = 403


class NotFoundError(WebApplicationError):
    status_code = 404


class ConflictError(WebApplicationError):
    status_code = 409


class UpstreamError(WebApplicationError):
    status_code = 500


MALFORMED_BODY = "Malformed entity representation in request body"
