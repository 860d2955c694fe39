"""Evidence form catalog commands (local, no server needed)."""

from __future__ import annotations

import click

from complyhub.cli.base import format_option
from complyhub.cli.output import OutputFormatter
from complyhub.evidence_forms import EvidenceFormType, get_definition, list_definitions


@click.group()
def forms() -> None:
    """Evidence form catalog."""
    pass


@forms.command("list")
@click.option("--all", "include_hidden", is_flag=True, help="Include hidden forms")
@format_option()
def forms_list(include_hidden: bool, output_format: str) -> None:
    """List evidence form types."""
    fmt = OutputFormatter(output_format)
    rows = [
        {
            "type": d.type.value,
            "title": d.title,
            "category": d.category,
            "date_mode": d.submission_date_mode,
            "portal": d.portal_accessible,
        }
        for d in list_definitions(include_hidden=include_hidden)
    ]
    fmt.print_table(rows, columns=["type", "title", "category", "date_mode", "portal"])


@forms.command("show")
@click.argument("form_type", type=click.Choice([t.value for t in EvidenceFormType]))
@format_option()
def forms_show(form_type: str, output_format: str) -> None:
    """Show the fields of a form type."""
    definition = get_definition(form_type)
    fmt = OutputFormatter(output_format)

    if output_format == "table":
        fmt.print_message(f"{definition.title}: {definition.description}")
    rows = [
        {
            "key": f.key,
            "label": f.label,
            "type": f.type,
            "required": f.required,
            "options": ", ".join(o.value for o in f.options) if f.options else "",
        }
        for f in definition.fields
    ]
    fmt.print_table(rows, columns=["key", "label", "type", "required", "options"])
