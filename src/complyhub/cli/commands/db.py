"""
Database management commands.
"""

import asyncio

import click


@click.group()
def db():
    """Database management commands."""
    pass


@db.command("init")
@click.option("--url", default=None, help="Database URL (default from settings)")
def db_init(url):
    """Create all tables from the ORM models."""
    from complyhub.server.config import get_settings
    from complyhub.server.db import close_db, create_tables, init_db

    database_url = url or get_settings().database.url

    async def _init():
        await init_db(database_url)
        try:
            await create_tables()
        finally:
            await close_db()

    asyncio.run(_init())
    click.echo("Database tables created")


@db.command("create-org")
@click.argument("name")
@click.option("--owner-user-id", required=True, help="Identity-provider user id of the owner")
@click.option("--owner-email", required=True, help="Owner email")
@click.option("--owner-name", default=None, help="Owner display name")
@click.option("--url", default=None, help="Database URL (default from settings)")
def db_create_org(name, owner_user_id, owner_email, owner_name, url):
    """Create an organization with its owner member."""
    from complyhub.server.config import get_settings
    from complyhub.server.db import close_db, get_session_context, init_db
    from complyhub.server.models import Member, Organization

    database_url = url or get_settings().database.url

    async def _create():
        await init_db(database_url)
        try:
            async with get_session_context() as session:
                org = Organization(name=name)
                session.add(org)
                await session.flush()
                member = Member(
                    organization_id=org.id,
                    user_id=owner_user_id,
                    email=owner_email,
                    name=owner_name,
                    role="owner",
                )
                session.add(member)
                await session.flush()
                return org.id, member.id
        finally:
            await close_db()

    org_id, member_id = asyncio.run(_create())
    click.echo(f"Organization: {org_id}")
    click.echo(f"Owner member: {member_id}")
