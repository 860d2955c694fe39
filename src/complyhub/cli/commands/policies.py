"""Policy commands."""

from __future__ import annotations

import sys

import click
import httpx

from complyhub.cli.base import api_client, file_progress, format_option, server_options
from complyhub.cli.output import OutputFormatter
from complyhub.cli.utils import chunked, collect_files, encode_file, handle_http_error

BATCH_SIZE = 50


@click.group()
def policies() -> None:
    """Policy management."""
    pass


@policies.command("list")
@click.option("--search", default=None, help="Name contains (case-insensitive)")
@click.option("--status", type=click.Choice(["draft", "published", "needs_review"]), default=None)
@click.option("--department", default=None)
@click.option("--sort", type=click.Choice(["name", "status", "updated_at"]), default="updated_at")
@click.option("--order", type=click.Choice(["asc", "desc"]), default="desc")
@click.option("--page", default=1, type=int)
@click.option("--page-size", default=50, type=int)
@server_options
@format_option()
def policies_list(search, status, department, sort, order, page, page_size,
                  server: str, org: str, user: str, output_format: str) -> None:
    """List policies."""
    fmt = OutputFormatter(output_format)
    params = {"sort": sort, "order": order, "page": page, "page_size": page_size}
    if search:
        params["search"] = search
    if status:
        params["status"] = status
    if department:
        params["department"] = department

    try:
        with api_client(server, org, user) as client:
            response = client.get("/policies", params=params)
            response.raise_for_status()
            data = response.json()
    except (httpx.TimeoutException, httpx.ConnectError, httpx.HTTPStatusError) as e:
        handle_http_error(e, server)
        sys.exit(1)

    fmt.print_table(data["items"], columns=["id", "name", "status", "department", "updated_at"])
    if output_format == "table":
        fmt.print_message(f"Page {data['page']}/{data['total_pages']} ({data['total']} policies)")


@policies.command("upload")
@click.argument("paths", nargs=-1, required=True, type=click.Path(exists=True))
@click.option("--recursive", "-r", is_flag=True, help="Recurse into directories")
@server_options
@format_option()
def policies_upload(paths, recursive: bool, server: str, org: str, user: str, output_format: str) -> None:
    """Upload PDFs; each file becomes a draft policy."""
    fmt = OutputFormatter(output_format)
    files = collect_files(paths, recursive=recursive)
    if not files:
        fmt.print_error("No PDF files found")
        sys.exit(1)

    results: list[dict] = []
    try:
        with api_client(server, org, user) as client, file_progress() as progress:
            task = progress.add_task("Uploading policies", total=len(files))
            for batch in chunked(files, BATCH_SIZE):
                response = client.post(
                    "/policies/bulk-upload",
                    json={"files": [encode_file(f) for f in batch]},
                )
                response.raise_for_status()
                results.extend(response.json()["results"])
                progress.advance(task, len(batch))
    except (httpx.TimeoutException, httpx.ConnectError, httpx.HTTPStatusError) as e:
        handle_http_error(e, server)
        sys.exit(1)

    fmt.print_table(results, columns=["file_name", "policy_id", "success", "error"])
    failed = sum(1 for r in results if not r["success"])
    if failed:
        fmt.print_error(f"{failed} of {len(results)} files failed")
        sys.exit(1)
    fmt.print_success(f"Uploaded {len(results)} policies")


@policies.command("delete")
@click.argument("policy_ids", nargs=-1, required=True)
@click.option("--yes", "-y", is_flag=True, help="Do not ask for confirmation")
@server_options
def policies_delete(policy_ids, yes: bool, server: str, org: str, user: str) -> None:
    """Delete policies by id."""
    fmt = OutputFormatter()
    if not yes:
        click.confirm(f"Delete {len(policy_ids)} policies?", abort=True)

    try:
        with api_client(server, org, user) as client:
            response = client.post("/policies/bulk-delete", json={"policy_ids": list(policy_ids)})
            response.raise_for_status()
            data = response.json()
    except (httpx.TimeoutException, httpx.ConnectError, httpx.HTTPStatusError) as e:
        handle_http_error(e, server)
        sys.exit(1)

    fmt.print_success(f"Deleted {data['deleted_count']} policies")
