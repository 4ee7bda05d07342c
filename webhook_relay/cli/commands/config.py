"""Configuration management commands."""

import json
import sys

import click
import yaml

from webhook_relay.cli.utils import error, info, success, warning
from webhook_relay.core.exceptions import ConfigurationError
from webhook_relay.core.settings import Settings, get_settings


@click.group(name="config")
def config() -> None:
    """Configuration management commands."""


def _load() -> Settings:
    try:
        return get_settings()
    except ConfigurationError as e:
        error(str(e))
        sys.exit(1)


def _config_dict(settings: Settings, show_secrets: bool) -> dict[str, dict[str, object]]:
    redis_password = settings.redis.password
    return {
        "app": {
            "name": settings.app.service_name,
            "environment": settings.app.environment,
            "host": settings.app.host,
            "port": settings.app.port,
            "api_prefix": settings.app.api_prefix,
            "debug": settings.app.debug,
        },
        "redis": {
            "host": settings.redis.host,
            "port": settings.redis.port,
            "db": settings.redis.db,
            "password": (
                redis_password.get_secret_value() if show_secrets and redis_password else "***"
            ),
            "max_connections": settings.redis.max_connections,
        },
        "relay": {
            "queue_backend": settings.relay.queue_backend,
            "queue_name": settings.relay.queue_name,
            "concurrency": settings.relay.concurrency,
            "delivery_timeout_ms": settings.relay.delivery_timeout_ms,
            "max_retry_delay_ms": settings.relay.max_retry_delay_ms,
            "send_idempotency_key": settings.relay.send_idempotency_key,
            "routes": len(settings.relay.routes),
        },
        "logging": {
            "level": settings.logging.level,
            "json_logs": settings.logging.json_logs,
        },
    }


@config.command()
@click.option(
    "--format",
    "output_format",
    type=click.Choice(["json", "yaml", "table"]),
    default="table",
    help="Output format",
)
@click.option(
    "--show-secrets/--hide-secrets",
    default=False,
    help="Show sensitive values (passwords)",
)
def show(output_format: str, show_secrets: bool) -> None:
    """Display current configuration settings."""
    config_dict = _config_dict(_load(), show_secrets)

    if output_format == "json":
        click.echo(json.dumps(config_dict, indent=2, default=str))
        return
    if output_format == "yaml":
        click.echo(yaml.safe_dump(config_dict, default_flow_style=False, sort_keys=False))
        return

    if not show_secrets:
        warning("Secrets are hidden. Use --show-secrets to display them.")
    for section, values in config_dict.items():
        click.echo(f"\n[{section.upper()}]")
        for key, value in values.items():
            click.echo(f"  {key:24} = {value}")


@config.command()
def validate() -> None:
    """Validate all settings, including cross-domain constraints."""
    info("Validating configuration...")
    settings = _load()
    success("Settings loaded")

    problems = settings.validate_all()
    for problem in problems:
        error(problem)
    if problems:
        sys.exit(1)

    success(
        f"Configuration valid: {len(settings.relay.routes)} route(s), "
        f"backend={settings.relay.queue_backend}"
    )
