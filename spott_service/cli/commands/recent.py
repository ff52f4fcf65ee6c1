"""Recent city search commands."""

import click

from spott_service.cli.utils import info, success
from spott_service.features.cities.recent import RecentSearches


@click.group(name="recent")
def recent() -> None:
    """Manage the recent city searches list."""


@recent.command(name="list")
def list_searches() -> None:
    """Print recent searches, most recent first."""
    entries = RecentSearches().entries()
    if not entries:
        info("No recent searches")
        return
    for city in entries:
        click.echo(city)


@recent.command(name="add")
@click.argument("city")
def add_search(city: str) -> None:
    """Record a search for CITY."""
    entries = RecentSearches().add(city)
    success(f"Recent searches: {', '.join(entries)}")


@recent.command(name="clear")
def clear_searches() -> None:
    """Forget every recent search."""
    RecentSearches().clear()
    success("Recent searches cleared")
