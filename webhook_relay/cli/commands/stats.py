"""Queue inspection command."""

import json
import sys

import click

from webhook_relay.cli.utils import coro, error, header
from webhook_relay.core.exceptions import ConfigurationError, QueueError
from webhook_relay.core.settings import get_redis_settings, get_relay_settings
from webhook_relay.infra.queue import create_job_queue


@click.command(name="stats")
@click.option("--failures", default=0, type=click.IntRange(0, 1000), help="Also show N recent failures")
@click.option("--json", "as_json", is_flag=True, help="Print JSON")
@coro
async def stats(failures: int, as_json: bool) -> None:
    """Show queue counts read from the backend."""
    try:
        queue = create_job_queue(get_relay_settings(), get_redis_settings())
        await queue.connect()
    except (ConfigurationError, QueueError) as e:
        error(str(e))
        sys.exit(1)

    try:
        counts = await queue.stats()
        records = await queue.recent_failures(failures) if failures else []
    except QueueError as e:
        error(str(e))
        sys.exit(1)
    finally:
        await queue.close()

    if as_json:
        click.echo(
            json.dumps(
                {"stats": counts.as_dict(), "failures": [r.to_json() for r in records]},
                indent=2,
            )
        )
        return

    header(f"Queue {queue.name}")
    for key, value in counts.as_dict().items():
        click.echo(f"  {key:12} {value}")
    if records:
        header("Recent failures")
        for record in records:
            click.echo(f"  {record.failed_at.isoformat()}  job={record.job_id}  {record.reason}")
