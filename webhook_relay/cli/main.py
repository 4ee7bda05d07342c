"""Main CLI entry point for webhook-relay."""

import sys

import click

from webhook_relay import __version__
from webhook_relay.cli.commands import config, routes, server, stats, worker
from webhook_relay.cli.utils import error
from webhook_relay.core.exceptions import ConfigurationError
from webhook_relay.infra.logging.config import setup_logging


@click.group()
@click.version_option(version=__version__, prog_name="webhook-relay")
@click.pass_context
def cli(ctx: click.Context) -> None:
    """Webhook relay: fan inbound webhooks out to configured destinations.

    \b
    Commands:
      serve      HTTP front door plus worker pool
      worker     Worker pool only
      stats      Queue counts and recent failures
      routes     Configured initial routes
      config     Show and validate configuration

    \b
    Quick Start:
      webhook-relay config validate
      webhook-relay serve --port 3000
    """
    ctx.ensure_object(dict)


cli.add_command(server.serve)
cli.add_command(worker.worker)
cli.add_command(stats.stats)
cli.add_command(routes.routes)
cli.add_command(config.config)


def main() -> None:
    """Entry point for CLI."""
    try:
        setup_logging()
    except ConfigurationError as e:
        error(str(e))
        sys.exit(1)
    cli(obj={})


if __name__ == "__main__":
    main()
