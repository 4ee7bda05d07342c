"""CLI command modules."""

from webhook_relay.cli.commands import config, routes, server, stats, worker

__all__ = ["config", "routes", "server", "stats", "worker"]
