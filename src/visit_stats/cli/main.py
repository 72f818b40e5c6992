"""Main CLI entry point for the visit-stats command."""

import asyncio
import sys
from typing import Awaitable, Callable, Optional, TypeVar

import click
from rich.console import Console
from rich.prompt import Confirm
from rich.table import Table

from ..core.attribution import AttributionResolver, extract_client_ip, is_local_or_private_ip
from ..core.errors import InvalidCountryCode, StoreUnavailable
from ..core.geoip import GeoIpDatabase
from ..storage.connection import RedisConnection
from ..storage.counters import VisitCounterStore
from ..website_api.config import settings

console = Console()

T = TypeVar("T")


def build_connection() -> RedisConnection:
    """Get a Redis connection configured from the environment."""
    return RedisConnection(settings.connection_config())


def run_with_store(operation: Callable[[VisitCounterStore], Awaitable[T]]) -> T:
    """Open the store, run ``operation`` and close it again."""

    async def runner():
        async with build_connection() as connection:
            return await operation(VisitCounterStore(connection, key=settings.visits_key))

    try:
        return asyncio.run(runner())
    except StoreUnavailable as e:
        console.print(f"[red]Store unavailable: {e.message}[/red]")
        sys.exit(1)


@click.group()
@click.version_option(version="1.0.0", prog_name="visit-stats")
def cli():
    """Visit statistics - per-country website visit counters.

    \b
    Quick Start:
      visit-stats serve                 # Run the HTTP API
      visit-stats stats                 # Show visits by country
      visit-stats country it            # Show one country
      visit-stats lookup 203.0.113.5    # Check how an address is attributed
    """
    pass


@cli.command()
@click.option("--host", default=None, help="Bind address (default VISITS_HOST)")
@click.option("--port", type=int, default=None, help="Port (default VISITS_PORT)")
def serve(host: Optional[str], port: Optional[int]):
    """Run the HTTP API."""
    import uvicorn
    from ..website_api.main import create_app

    uvicorn.run(
        create_app(),
        host=host or settings.host,
        port=port or settings.port,
        timeout_keep_alive=65,
    )


@cli.command()
def stats():
    """Show visit counts for all countries."""
    counts = run_with_store(lambda store: store.read_all())
    if not counts:
        console.print("[dim]No visits recorded yet[/dim]")
        return

    total = sum(counts.values())
    table = Table(title=f"Visits by country ({total} total)")
    table.add_column("Country", style="cyan")
    table.add_column("Visits", justify="right")
    table.add_column("Share", justify="right")
    for country, count in sorted(counts.items(), key=lambda item: (-item[1], item[0])):
        table.add_row(country.upper(), str(count), f"{count / total:.1%}")
    console.print(table)


@cli.command()
@click.argument("code")
def country(code: str):
    """Show the visit count for one COUNTRY code."""
    try:
        count = run_with_store(lambda store: store.read_one(code))
    except InvalidCountryCode as e:
        console.print(f"[red]{e.message}[/red]")
        sys.exit(1)
    console.print(f"{code.strip().upper()}: [bold]{count}[/bold] visits")


@cli.command()
@click.option("--yes", is_flag=True, help="Skip confirmation")
def reset(yes: bool):
    """Delete all visit counters."""
    if not yes and not Confirm.ask("Delete all visit statistics?"):
        console.print("[dim]Cancelled[/dim]")
        return
    run_with_store(lambda store: store.reset())
    console.print("[green]Visit statistics reset[/green]")


@cli.command()
@click.argument("address")
@click.option("--forwarded-for", default=None, help="Simulated X-Forwarded-For header")
def lookup(address: str, forwarded_for: Optional[str]):
    """Show which country ADDRESS would be counted against."""
    headers = {"x-forwarded-for": forwarded_for} if forwarded_for else {}
    ip = extract_client_ip(headers, address)

    geo = GeoIpDatabase.open(settings.geoip_db_path)
    try:
        resolver = AttributionResolver(geo, local_country=settings.local_country)
        result = resolver.country_for_ip(ip)
    finally:
        geo.close()

    if is_local_or_private_ip(ip):
        console.print(f"{ip or '(empty)'}: local/private address")
    if result:
        console.print(f"{ip}: [green]{result}[/green]")
    else:
        console.print(f"{ip}: [yellow]country undetectable[/yellow]")
        sys.exit(1)


if __name__ == "__main__":
    cli()
