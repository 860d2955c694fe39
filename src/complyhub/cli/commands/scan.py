"""Cloud security scan commands."""

from __future__ import annotations

import asyncio
import sys

import click

from complyhub.cli.base import format_option, server_options, spinner
from complyhub.cli.output import OutputFormatter
from complyhub.client import ComplyHubClient
from complyhub.client.client import MAX_POLL_ATTEMPTS, POLL_INTERVAL_SECONDS


@click.group()
def scan() -> None:
    """Cloud security scans."""
    pass


@scan.command("run")
@click.argument("connection_id")
@click.option("--max-attempts", default=MAX_POLL_ATTEMPTS, type=int, help="Status polls before giving up")
@click.option("--interval", default=POLL_INTERVAL_SECONDS, type=float, help="Seconds between polls")
@server_options
@format_option(choices=["table", "json"])
def scan_run(connection_id: str, max_attempts: int, interval: float,
             server: str, org: str, user: str, output_format: str) -> None:
    """Trigger a scan of CONNECTION_ID and wait for the result."""
    fmt = OutputFormatter(output_format)

    async def _run():
        async with ComplyHubClient(server, organization_id=org, user_id=user) as client:
            with spinner() as progress:
                task = progress.add_task("Scan queued...", total=None)

                def on_poll(attempt: int, status: dict) -> None:
                    progress.update(task, description=f"Scan {status.get('status', 'running')}...")

                return await client.run_platform_scan(
                    connection_id,
                    max_attempts=max_attempts,
                    poll_interval=interval,
                    on_poll=on_poll,
                )

    outcome = asyncio.run(_run())
    fmt.print_record(outcome.to_dict())
    if not outcome.success:
        sys.exit(1)
