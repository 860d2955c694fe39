"""Shared CLI decorators and utilities."""

from __future__ import annotations

import functools
from collections.abc import Callable, Iterator
from contextlib import contextmanager
from typing import Any

import click
import httpx
from rich.progress import (
    BarColumn,
    MofNCompleteColumn,
    Progress,
    SpinnerColumn,
    TextColumn,
    TimeElapsedColumn,
)


def server_options(f: Callable[..., Any]) -> Callable[..., Any]:
    """Add ``--server``, ``--org`` and ``--user`` options for API-calling commands.

    Commands receive ``server``, ``org`` and ``user`` keyword arguments.
    The identity is sent as ``X-Organization-Id`` / ``X-User-Id``.
    """
    @click.option(
        "--server", "-s",
        envvar="COMPLYHUB_SERVER_URL",
        default="http://localhost:8000",
        help="Server URL",
    )
    @click.option(
        "--org",
        envvar="COMPLYHUB_ORG_ID",
        required=True,
        help="Organization ID",
    )
    @click.option(
        "--user",
        envvar="COMPLYHUB_USER_ID",
        required=True,
        help="User ID of the acting member",
    )
    @functools.wraps(f)
    def wrapper(*args: Any, **kwargs: Any) -> Any:
        return f(*args, **kwargs)
    return wrapper


def format_option(
    choices: list[str] | None = None,
    default: str | None = None,
) -> Callable[..., Any]:
    """Add ``--format`` / ``-f`` option with configurable choices.

    The Python parameter is named ``output_format`` to avoid shadowing the
    built-in ``format``.
    """
    if choices is None:
        choices = ["table", "json", "csv"]
    if default is None:
        default = choices[0]

    def decorator(f: Callable[..., Any]) -> Callable[..., Any]:
        @click.option(
            "--format", "-f", "output_format",
            type=click.Choice(choices),
            default=default,
            help="Output format",
        )
        @functools.wraps(f)
        def wrapper(*args: Any, **kwargs: Any) -> Any:
            return f(*args, **kwargs)
        return wrapper
    return decorator


def file_progress(description: str = "Processing") -> Progress:
    """Create a :class:`rich.progress.Progress` bar for per-file work.

    Usage::

        with file_progress("Uploading") as progress:
            task = progress.add_task("Uploading", total=len(files))
            for f in files:
                upload(f)
                progress.advance(task)
    """
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        BarColumn(),
        MofNCompleteColumn(),
        TimeElapsedColumn(),
        transient=True,
    )


def spinner(description: str = "Working...") -> Progress:
    """Create a spinner-style progress indicator for indeterminate operations."""
    return Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        TimeElapsedColumn(),
        transient=True,
    )


def identity_headers(org: str, user: str) -> dict[str, str]:
    return {"X-Organization-Id": org, "X-User-Id": user}


@contextmanager
def api_client(server: str, org: str, user: str) -> Iterator[httpx.Client]:
    """httpx client rooted at the server's ``/api/v1`` with identity headers.

    Commands use paths relative to the API root (e.g. ``/policies``).
    """
    client = httpx.Client(
        base_url=f"{server.rstrip('/')}/api/v1",
        timeout=60.0,
        headers=identity_headers(org, user),
    )
    try:
        yield client
    finally:
        client.close()
