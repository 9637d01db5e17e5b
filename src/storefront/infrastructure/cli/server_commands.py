"""CLI command running the HTTP server."""

from __future__ import annotations

import logging

import click
import uvicorn

from storefront.infrastructure.config import get_settings

LOG_FORMAT = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"


def configure_logging() -> None:
    settings = get_settings()
    level = logging.DEBUG if settings.is_development else settings.LOG_LEVEL.upper()
    logging.basicConfig(level=level, format=LOG_FORMAT)


@click.command("serve")
@click.option("--host", default="127.0.0.1", show_default=True, help="Interface to bind.")
@click.option("--port", default=8000, show_default=True, type=int, help="Port to listen on.")
@click.option("--reload", is_flag=True, help="Restart on code changes.")
def serve(host: str, port: int, reload: bool) -> None:
    """Run the API server."""
    configure_logging()
    uvicorn.run(
        "storefront.infrastructure.web.app:create_app",
        factory=True,
        host=host,
        port=port,
        reload=reload,
        log_config=None,
    )
