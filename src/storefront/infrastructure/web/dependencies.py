"""FastAPI dependencies shared by every route."""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable

from fastapi import Depends, HTTPException, status
from fastapi.security import HTTPBasic, HTTPBasicCredentials

logger = logging.getLogger(__name__)

_basic = HTTPBasic(auto_error=False)

CLIENT_AUTH_REQUIRED = "Client authentication required."


def client_credentials(allowed: list[str]) -> Callable[..., None]:
    """Build a dependency checking HTTP Basic client credentials.

    ``allowed`` holds ``user:password`` pairs. An empty list lets every
    client through.
    """
    pairs = [pair.encode("utf-8") for pair in allowed]

    def verify(credentials: HTTPBasicCredentials | None = Depends(_basic)) -> None:
        if not pairs:
            return
        if credentials is not None:
            supplied = f"{credentials.username}:{credentials.password}".encode("utf-8")
            if any(secrets.compare_digest(supplied, pair) for pair in pairs):
                return
            logger.warning("Rejected client credentials for %s", credentials.username)
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail=CLIENT_AUTH_REQUIRED,
            headers={"WWW-Authenticate": 'Basic realm="Storefront API"'},
        )

    return verify
