"""
ComplyHub CLI entry point.

Usage:
    complyhub serve [--host HOST] [--port PORT] [--workers N]
    complyhub db init
    complyhub forms list
    complyhub policies upload ./policies --org ORG --user USER
    complyhub scan run CONNECTION_ID --org ORG --user USER
"""

import click

from complyhub import __version__
from complyhub.cli.commands import db, forms, policies, scan, serve


@click.group()
@click.version_option(__version__)
def cli():
    """ComplyHub - Compliance Automation Platform"""
    pass


cli.add_command(serve)
cli.add_command(db)
cli.add_command(forms)
cli.add_command(policies)
cli.add_command(scan)


def main():
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
