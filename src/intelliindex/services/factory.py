"""Factory functions and registrars for wiring repositories.

Provides production wiring through the dependency container and test
factories that use in-memory stores for fast, isolated testing.
"""

from dataclasses import dataclass

import structlog
from sqlalchemy.ext.asyncio import AsyncEngine

from intelliindex.config import AppConfig, DatabaseConfig, ElasticConfig
from intelliindex.container import Container, batch_register
from intelliindex.models.enums import StorageBackend
from intelliindex.repositories.base import DocumentRepository, IndexRepository
from intelliindex.services.database import (
    MigrationHandler,
    create_async_engine_from_config,
    create_async_engine_from_path,
)
from intelliindex.services.elastic_client import ElasticClient, create_es_client
from intelliindex.services.elastic_documents import ElasticDocumentRepository
from intelliindex.services.elastic_indices import ElasticIndexRepository
from intelliindex.services.sql_documents import SqlDocumentRepository
from intelliindex.services.sql_indices import SqlIndexRepository

ELASTIC_CLIENT = "elastic.client"
ELASTIC_DOCUMENT_REPOSITORY = "elastic.document_repository"
ELASTIC_INDEX_REPOSITORY = "elastic.index_repository"

DATABASE_ENGINE = "database.engine"
DATABASE_DOCUMENT_REPOSITORY = "database.document_repository"
DATABASE_INDEX_REPOSITORY = "database.index_repository"
DATABASE_MIGRATION_HANDLER = "database.migration_handler"

DOCUMENT_REPOSITORY = "document_repository"
INDEX_REPOSITORY = "index_repository"

_BACKEND_PREFIXES = {
    StorageBackend.ELASTICSEARCH: "elastic",
    StorageBackend.DATABASE: "database",
}


class ElasticsearchAdapterRegistrar:
    """Registers the Elasticsearch client and repositories."""

    def __init__(self, cfg: ElasticConfig, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._cfg = cfg
        self._logger = logger or structlog.get_logger(__name__)

    def register(self, container: Container) -> None:
        cfg = self._cfg
        logger = self._logger
        container.register(
            ELASTIC_CLIENT,
            lambda: ElasticClient(create_es_client(cfg), index_prefix=cfg.index_prefix, logger=logger),
        )
        container.register(
            ELASTIC_DOCUMENT_REPOSITORY,
            lambda: ElasticDocumentRepository(container.resolve(ELASTIC_CLIENT), logger=logger),
        )
        container.register(
            ELASTIC_INDEX_REPOSITORY,
            lambda: ElasticIndexRepository(
                container.resolve(ELASTIC_CLIENT),
                refresh_timeout=cfg.timeout,
                logger=logger,
            ),
        )


class DatabaseAdapterRegistrar:
    """Registers the async engine, relational repositories and migration handler."""

    def __init__(self, cfg: DatabaseConfig, logger: structlog.stdlib.BoundLogger | None = None) -> None:
        self._cfg = cfg
        self._logger = logger or structlog.get_logger(__name__)

    def register(self, container: Container) -> None:
        cfg = self._cfg
        logger = self._logger
        container.register(DATABASE_ENGINE, lambda: create_async_engine_from_config(cfg))
        container.register(
            DATABASE_DOCUMENT_REPOSITORY,
            lambda: SqlDocumentRepository(container.resolve(DATABASE_ENGINE), logger=logger),
        )
        container.register(
            DATABASE_INDEX_REPOSITORY,
            lambda: SqlIndexRepository(container.resolve(DATABASE_ENGINE), logger=logger),
        )
        container.register(
            DATABASE_MIGRATION_HANDLER,
            lambda: MigrationHandler(container.resolve(DATABASE_ENGINE), logger=logger),
        )


def build_container(config: AppConfig) -> Container:
    """Create a container with both adapters registered.

    ``document_repository`` and ``index_repository`` are aliases for the
    adapter pair selected by ``config.backend``.
    """
    logger = structlog.get_logger(__name__)
    container = Container()
    batch_register(
        container,
        ElasticsearchAdapterRegistrar(config.elastic, logger=logger),
        DatabaseAdapterRegistrar(config.database, logger=logger),
    )

    prefix = _BACKEND_PREFIXES[config.backend]
    container.register(DOCUMENT_REPOSITORY, lambda: container.resolve(f"{prefix}.document_repository"))
    container.register(INDEX_REPOSITORY, lambda: container.resolve(f"{prefix}.index_repository"))
    logger.debug("container_built", backend=config.backend.value)
    return container


async def close_container(container: Container) -> None:
    """Release whatever the container actually constructed."""
    if container.is_resolved(ELASTIC_INDEX_REPOSITORY):
        await container.must_resolve(ELASTIC_INDEX_REPOSITORY, IndexRepository).close()
    if container.is_resolved(ELASTIC_CLIENT):
        await container.must_resolve(ELASTIC_CLIENT, ElasticClient).close()
    if container.is_resolved(DATABASE_ENGINE):
        await container.must_resolve(DATABASE_ENGINE, AsyncEngine).dispose()


@dataclass
class RelationalRepositories:
    engine: AsyncEngine
    documents: DocumentRepository
    indices: IndexRepository
    migrations: MigrationHandler


def create_test_repositories() -> RelationalRepositories:
    """Create relational repositories over in-memory SQLite for testing.

    Each call creates independent storage, so tests don't interfere. The
    schema is not created; call ``migrations.run_migrations()`` first.
    """
    logger = structlog.get_logger(__name__)
    engine = create_async_engine_from_path(":memory:")
    return RelationalRepositories(
        engine=engine,
        documents=SqlDocumentRepository(engine, logger=logger),
        indices=SqlIndexRepository(engine, logger=logger),
        migrations=MigrationHandler(engine, logger=logger),
    )
