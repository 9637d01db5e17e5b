"""CLI commands for the response cache."""

from __future__ import annotations

import json

import click

from storefront.domain.exceptions import CacheStoreError
from storefront.infrastructure.bootstrap import cache_store
from storefront.infrastructure.config import get_settings


@click.command("stats")
def cache_stats() -> None:
    """Show cache statistics."""
    settings = get_settings()
    try:
        stats = cache_store(settings).stats()
    except CacheStoreError as exc:
        raise click.ClickException(str(exc))

    stats["backend"] = settings.CACHE_BACKEND
    click.echo(json.dumps(stats, indent=2, sort_keys=True))


@click.command("flush")
def cache_flush() -> None:
    """Drop every cached response."""
    try:
        cache_store(get_settings()).flush()
    except CacheStoreError as exc:
        raise click.ClickException(str(exc))

    click.echo("Cache flushed")


@click.command("invalidate")
@click.option("--tag", "tags", multiple=True, required=True, help="Tag to invalidate (repeatable).")
def cache_invalidate(tags: tuple[str, ...]) -> None:
    """Drop the cached responses carrying any of the given tags."""
    try:
        removed = cache_store(get_settings()).invalidate_tags(tags)
    except CacheStoreError as exc:
        raise click.ClickException(str(exc))

    click.echo(f"Invalidated {removed} cached response(s) for {', '.join(tags)}")
