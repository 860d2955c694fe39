"""Rendering of command results as rich tables, JSON or CSV."""

from __future__ import annotations

import csv
import io
import json
from typing import Any

import click
from rich.console import Console
from rich.table import Table

OUTPUT_FORMATS = ["table", "json", "csv"]


def _cell(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, bool):
        return "yes" if value else "no"
    return str(value)


class OutputFormatter:
    """Prints rows and records in the format picked with ``--format``.

    JSON keeps native values (booleans stay booleans); table and CSV
    output render them through ``_cell``. Status lines go through
    ``print_success`` / ``print_error`` so ``--quiet`` can drop the noise.
    """

    def __init__(self, output_format: str = "table", quiet: bool = False) -> None:
        self.format = output_format
        self.quiet = quiet

    def print_table(
        self,
        rows: list[dict[str, Any]],
        columns: list[str],
        title: str | None = None,
    ) -> None:
        if self.format == "json":
            self._echo_json(rows)
        elif self.format == "csv":
            self._echo_csv(rows, columns)
        else:
            self._echo_rich_table(rows, columns, title)

    def print_record(self, record: dict[str, Any]) -> None:
        """One result, as JSON or ``key: value`` lines."""
        if self.format == "json":
            self._echo_json(record)
            return
        width = max((len(k) for k in record), default=0)
        for key, value in record.items():
            click.echo(f"{key.ljust(width)}  {_cell(value)}")

    def print_success(self, message: str) -> None:
        if not self.quiet:
            click.echo(f"OK: {message}")

    def print_error(self, message: str) -> None:
        click.echo(f"Error: {message}", err=True)

    def print_message(self, message: str) -> None:
        if not self.quiet:
            click.echo(message)

    @staticmethod
    def _echo_json(data: Any) -> None:
        click.echo(json.dumps(data, indent=2, default=str))

    @staticmethod
    def _echo_csv(rows: list[dict[str, Any]], columns: list[str]) -> None:
        buffer = io.StringIO()
        writer = csv.writer(buffer)
        writer.writerow(columns)
        for row in rows:
            writer.writerow([_cell(row.get(c)) for c in columns])
        click.echo(buffer.getvalue().rstrip("\r\n"))

    @staticmethod
    def _echo_rich_table(rows: list[dict[str, Any]], columns: list[str], title: str | None) -> None:
        # Header is printed for an empty result too, so "no rows" is visible
        table = Table(title=title)
        for column in columns:
            table.add_column(column.replace("_", " ").title(), overflow="ellipsis", max_width=50)
        for row in rows:
            table.add_row(*(_cell(row.get(c)) for c in columns))
        Console().print(table)
