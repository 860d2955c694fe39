"""
CLI utility functions shared across command modules.
"""

import base64
import logging
import mimetypes
from pathlib import Path

import click
import httpx

logger = logging.getLogger(__name__)


def handle_http_error(e: Exception, server: str):
    """Handle common HTTP errors with user-friendly messages."""
    if isinstance(e, httpx.TimeoutException):
        click.echo("Error: Request timed out connecting to server", err=True)
    elif isinstance(e, httpx.ConnectError):
        click.echo(f"Error: Cannot connect to server at {server}: {e}", err=True)
    elif isinstance(e, httpx.HTTPStatusError):
        click.echo(f"Error: HTTP error {e.response.status_code}: {response_message(e.response)}", err=True)
    else:
        click.echo(f"Error: {e}", err=True)


def response_message(response: httpx.Response) -> str:
    """The ``message`` of an error body, or the raw text."""
    try:
        body = response.json()
    except ValueError:
        return response.text
    if isinstance(body, dict) and body.get("message"):
        return str(body["message"])
    return response.text


def collect_files(paths, recursive=False, suffixes=(".pdf",)):
    """Collect files from paths (files or directories).

    Directories are expanded to the files inside them whose suffix is in
    *suffixes*; explicitly named files are always kept.

    Returns:
        Sorted list of Path objects for the files found.
    """
    files: list[Path] = []
    for path in paths:
        target_path = Path(path)
        if target_path.is_dir():
            found = target_path.rglob("*") if recursive else target_path.glob("*")
            files.extend(
                f for f in found
                if f.is_file() and f.suffix.lower() in suffixes
            )
        else:
            files.append(target_path)
    return sorted(set(files))


def encode_file(path: Path) -> dict[str, str]:
    """Bulk-upload entry for a local file."""
    file_type = mimetypes.guess_type(path.name)[0] or "application/octet-stream"
    return {
        "file_name": path.name,
        "file_type": file_type,
        "file_data": base64.b64encode(path.read_bytes()).decode("ascii"),
    }


def chunked(items, size):
    """Split *items* into lists of at most *size* elements."""
    return [items[i:i + size] for i in range(0, len(items), size)]
