"""tasktracker CLI — run the API server and manage the database schema.

Usage:
    tasktracker serve                 # uvicorn on TASKTRACKER_HOST:TASKTRACKER_PORT
    tasktracker serve --reload        # auto-reload for development
    tasktracker init-db               # create tables and indexes
"""

from __future__ import annotations

import asyncio
import sys
from typing import Optional

import click

from tasktracker import __version__
from tasktracker.config import get_settings
from tasktracker.errors import ServerConfigError


@click.group()
@click.version_option(version=__version__, prog_name="tasktracker")
def main():
    """Task tracker backend."""


@main.command()
@click.option("--host", help="Bind address (default: TASKTRACKER_HOST)")
@click.option("--port", type=int, help="Port (default: TASKTRACKER_PORT)")
@click.option("--reload", is_flag=True, help="Reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the HTTP API with uvicorn."""
    import uvicorn

    settings = get_settings()
    try:
        settings.require_jwt_secret()
    except ServerConfigError as e:
        click.secho(f"Error: {e}", fg="red", err=True)
        sys.exit(1)

    uvicorn.run(
        "tasktracker.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


@main.command("init-db")
def init_db():
    """Create the users/tasks tables and their indexes."""
    from tasktracker.db.engine import create_engine_from_settings, init_models

    settings = get_settings()
    if settings.store_backend != "postgres":
        click.secho("Store backend is not SQL; nothing to initialize.", fg="yellow")
        return

    async def _init():
        engine = create_engine_from_settings(settings)
        try:
            await init_models(engine)
        finally:
            await engine.dispose()

    asyncio.run(_init())
    click.secho("Database schema is up to date.", fg="green")


if __name__ == "__main__":
    main()
