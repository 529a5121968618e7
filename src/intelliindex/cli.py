"""intelliindex CLI.

Composition root for the process: loads configuration, builds the dependency
container and drives migrations and index administration.
"""

import asyncio
import sys
from collections.abc import Awaitable, Callable
from typing import Optional, TypeVar

import structlog
import typer

from intelliindex.config import AppConfig, load_config
from intelliindex.container import Container
from intelliindex.errors import ConfigError, IntelliIndexError
from intelliindex.models.enums import StorageBackend
from intelliindex.models.index import Index, IndexSettings
from intelliindex.repositories.base import IndexRepository
from intelliindex.services.database import MigrationHandler, ping_database
from intelliindex.services.elastic_client import ElasticClient
from intelliindex.services.factory import (
    DATABASE_ENGINE,
    DATABASE_MIGRATION_HANDLER,
    ELASTIC_CLIENT,
    INDEX_REPOSITORY,
    build_container,
    close_container,
)

T = TypeVar("T")

structlog.configure(
    processors=[
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.dev.ConsoleRenderer(),
    ],
    logger_factory=lambda name: structlog.PrintLogger(file=sys.stderr),
    wrapper_class=structlog.BoundLogger,
    context_class=dict,
    cache_logger_on_first_use=True,
)

logger = structlog.get_logger(__name__)

app = typer.Typer(
    name="intelliindex",
    help="""Manage search indices stored in Elasticsearch or a relational database.

Examples:

  # Create the relational schema
  uv run intelliindex migrate

  # Check backend connectivity
  uv run intelliindex ping --config config.yaml

  # Create an index that refreshes every 5 seconds
  uv run intelliindex create-index articles --refresh-interval 5s""",
    rich_markup_mode="markdown",
)

ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="YAML configuration file (default: config.yaml in the current directory)",
)
EnvFileOption = typer.Option(
    ".env",
    "--env-file",
    help="Environment file loaded before reading configuration",
)


def _load_config(config_path: Optional[str], env_file: Optional[str]) -> AppConfig:
    try:
        return load_config(config_path, env_file)
    except ConfigError as e:
        logger.error("config_invalid", error=str(e))
        raise typer.Exit(1)


def _run(config: AppConfig, action: Callable[[Container], Awaitable[T]]) -> T:
    """Run an async action against a freshly built container and release it afterwards."""

    async def runner() -> T:
        container = build_container(config)
        try:
            if config.backend == StorageBackend.DATABASE and config.database.auto_migrate:
                await container.must_resolve(DATABASE_MIGRATION_HANDLER, MigrationHandler).run_migrations()
            return await action(container)
        finally:
            await close_container(container)

    try:
        return asyncio.run(runner())
    except IntelliIndexError as e:
        logger.error("command_failed", error=str(e))
        raise typer.Exit(1)


@app.command()
def migrate(
    reset: bool = typer.Option(
        False,
        "--reset",
        help="Drop all tables before recreating the schema",
    ),
    config_path: Optional[str] = ConfigOption,
    env_file: Optional[str] = EnvFileOption,
) -> None:
    """Create (or reset) the relational database schema."""
    config = _load_config(config_path, env_file)

    async def action(container: Container) -> None:
        handler = container.must_resolve(DATABASE_MIGRATION_HANDLER, MigrationHandler)
        if reset:
            await handler.reset_database()
        else:
            await handler.run_migrations()

    _run(config, action)
    typer.echo("Database reset complete" if reset else "Migrations complete")


@app.command()
def ping(
    config_path: Optional[str] = ConfigOption,
    env_file: Optional[str] = EnvFileOption,
) -> None:
    """Check connectivity to Elasticsearch and the database."""
    config = _load_config(config_path, env_file)

    async def action(container: Container) -> dict[StorageBackend, bool]:
        client = container.must_resolve(ELASTIC_CLIENT, ElasticClient)
        return {
            StorageBackend.ELASTICSEARCH: await client.ping(),
            StorageBackend.DATABASE: await ping_database(container.resolve(DATABASE_ENGINE)),
        }

    health = _run(config, action)
    for backend, healthy in health.items():
        typer.echo(f"{backend.value}: {'ok' if healthy else 'unreachable'}")
    if not health[config.backend]:
        raise typer.Exit(1)


@app.command("create-index")
def create_index(
    name: str = typer.Argument(
        ...,
        help="Unique index name",
    ),
    description: str = typer.Option(
        "",
        "--description",
        "-d",
        help="Free-text description",
    ),
    refresh_interval: Optional[str] = typer.Option(
        None,
        "--refresh-interval",
        "-r",
        help="Auto-refresh interval such as 1s or 500ms; -1 disables it (default: from config)",
    ),
    config_path: Optional[str] = ConfigOption,
    env_file: Optional[str] = EnvFileOption,
) -> None:
    """Create an index in the configured backend."""
    config = _load_config(config_path, env_file)

    try:
        index = Index.new(name, description)
    except IntelliIndexError as e:
        logger.error("invalid_index", error=str(e))
        raise typer.Exit(1)
    index.settings = IndexSettings(
        shards=config.elastic.number_of_shards,
        replicas=config.elastic.number_of_replicas,
        refresh_interval=config.elastic.refresh_interval if refresh_interval is None else refresh_interval,
    )

    async def action(container: Container) -> None:
        await container.must_resolve(INDEX_REPOSITORY, IndexRepository).create(index)

    _run(config, action)
    typer.echo(f"Created index {index.name} ({index.id})")


@app.command("show-index")
def show_index(
    name: str = typer.Argument(
        ...,
        help="Index name",
    ),
    config_path: Optional[str] = ConfigOption,
    env_file: Optional[str] = EnvFileOption,
) -> None:
    """Print an index as JSON."""
    config = _load_config(config_path, env_file)

    async def action(container: Container) -> Index | None:
        return await container.must_resolve(INDEX_REPOSITORY, IndexRepository).get_by_name(name)

    index = _run(config, action)
    if index is None:
        logger.error("index_not_found", name=name)
        typer.echo(f"No index named '{name}'")
        raise typer.Exit(1)
    typer.echo(index.model_dump_json(indent=2))


@app.command()
def version() -> None:
    """Show version information."""
    from intelliindex import __version__

    typer.echo(f"intelliindex {__version__}")
