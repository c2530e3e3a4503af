"""portal-accounts CLI — run the server and handle support chores.

Usage:
    portal-accounts serve                       # Run the API with uvicorn
    portal-accounts init-db                     # Create tables (dev/test; prod uses alembic)
    portal-accounts issue-token ana@example.com # Mint a local login token for a user
"""

from __future__ import annotations

import asyncio
import sys
from datetime import timedelta
from typing import Optional

import click
from pydantic import ValidationError

from portal_accounts.auth.jwt import TokenService
from portal_accounts.config import Settings
from portal_accounts.db.engine import build_engine, build_session_factory
from portal_accounts.db.models import Base
from portal_accounts.services.user_store import SqlUserStore


def _settings() -> Settings:
    try:
        return Settings()
    except ValidationError as e:
        click.secho(f"Configuration error:\n{e}", fg="red", err=True)
        sys.exit(1)


@click.group()
def cli():
    """Portal accounts — operator commands."""


@cli.command()
@click.option("--host", default=None, help="Bind address (default: PORTAL_HOST)")
@click.option("--port", default=None, type=int, help="Port (default: PORTAL_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes (development)")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the API server."""
    import uvicorn

    settings = _settings()
    uvicorn.run(
        "portal_accounts.main:create_app",
        factory=True,
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@cli.command("init-db")
def init_db():
    """Create all tables directly from the models."""
    settings = _settings()

    async def _create():
        engine = build_engine(settings)
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
        await engine.dispose()

    asyncio.run(_create())
    click.secho("Tables created.", fg="green")


@cli.command("issue-token")
@click.argument("email")
@click.option("--days", default=None, type=int, help="Lifetime in days (default: login token TTL)")
def issue_token(email: str, days: Optional[int]):
    """Print a local login token for the user with EMAIL."""
    settings = _settings()
    tokens = TokenService.from_settings(settings)

    async def _lookup():
        engine = build_engine(settings)
        try:
            async with build_session_factory(engine)() as session:
                return await SqlUserStore(session).find_user_by_email(email)
        finally:
            await engine.dispose()

    user = asyncio.run(_lookup())
    if user is None:
        click.secho(f"No user with email {email}", fg="red", err=True)
        sys.exit(1)

    ttl = timedelta(days=days) if days else None
    click.echo(tokens.issue(user.id, user.email, user.username, ttl=ttl))


def main():
    cli()


if __name__ == "__main__":
    main()
