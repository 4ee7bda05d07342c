"""Route inspection commands."""

import json
import sys

import click

from webhook_relay.cli.utils import error, info
from webhook_relay.core.exceptions import ConfigurationError
from webhook_relay.core.settings import get_relay_settings


@click.group(name="routes")
def routes() -> None:
    """Inspect the configured initial routes."""


@routes.command(name="list")
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "table"]),
    default="table",
    help="Output format",
)
def list_routes(output_format: str) -> None:
    """List routes loaded from configuration."""
    try:
        configured = get_relay_settings().routes
    except ConfigurationError as e:
        error(str(e))
        sys.exit(1)

    if output_format == "json":
        click.echo(
            json.dumps([r.model_dump(mode="json", by_alias=True) for r in configured], indent=2)
        )
        return

    if not configured:
        info("No routes configured")
        return

    click.echo(f"{'ID':36}  {'ENABLED':7}  {'SOURCE EVENT':24}  DESTINATION")
    for route in configured:
        click.echo(
            f"{route.id!s:36}  {'yes' if route.enabled else 'no':7}  "
            f"{route.source_event:24}  {route.destination_url}"
        )
