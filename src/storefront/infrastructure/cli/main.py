import click

from storefront.infrastructure.cli.cache_commands import cache_flush, cache_invalidate, cache_stats
from storefront.infrastructure.cli.server_commands import serve


@click.group()
def cli() -> None:
    """Storefront API"""


@cli.group()
def cache() -> None:
    """Manage the response cache."""


# Register subcommands
cli.add_command(serve)
cache.add_command(cache_flush)
cache.add_command(cache_invalidate)
cache.add_command(cache_stats)
