"""Index repository backed by a relational database."""

from __future__ import annotations

import json
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import delete, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from intelliindex.errors import (
    BackendError,
    IndexAlreadyExistsError,
    IndexNotFoundError,
    InvalidEntityError,
)
from intelliindex.models.base import utc_now
from intelliindex.models.enums import IndexStatus
from intelliindex.models.index import Index, IndexSettings
from intelliindex.models.tables import (
    DocumentKeywordRecord,
    DocumentLinkRecord,
    DocumentMetadataRecord,
    DocumentRecord,
    IndexRecord,
)
from intelliindex.repositories.base import IndexRepository
from intelliindex.services.database import is_unique_violation, translate_errors
from intelliindex.services.sql_documents import as_utc


class SqlIndexRepository(IndexRepository):
    """Persists indices in the ``indexes`` table.

    Settings and field mappings are stored as serialized JSON text. Document
    counts are computed from the documents table on every read.
    """

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)

    async def create(self, index: Index) -> None:
        index.ensure_valid()
        index_id = index.id or str(uuid4())
        record = self._index_to_record(index, index_id, IndexStatus.ACTIVE)
        try:
            async with AsyncSession(self._engine) as session:
                async with session.begin():
                    session.add(record)
        except IntegrityError as e:
            if is_unique_violation(e):
                raise IndexAlreadyExistsError(index.name) from e
            raise BackendError(f"failed to create index: {e}") from e
        except SQLAlchemyError as e:
            raise BackendError(f"failed to create index: {e}") from e

        index.id = index_id
        index.status = IndexStatus.ACTIVE
        self._logger.info("index_created", index_id=index_id, name=index.name)

    async def get_by_id(self, index_id: str) -> Index | None:
        if not index_id:
            raise InvalidEntityError("index ID cannot be empty")
        with translate_errors("get index"):
            async with AsyncSession(self._engine) as session:
                record = await session.get(IndexRecord, index_id)
                if record is None:
                    return None
                return await self._record_to_index(session, record)

    async def get_by_name(self, name: str) -> Index | None:
        if not name:
            raise InvalidEntityError("index name cannot be empty")
        with translate_errors("get index by name"):
            async with AsyncSession(self._engine) as session:
                result = await session.execute(select(IndexRecord).where(IndexRecord.name == name))
                record = result.scalar_one_or_none()
                if record is None:
                    return None
                return await self._record_to_index(session, record)

    async def list(self) -> list[Index]:
        with translate_errors("list indices"):
            async with AsyncSession(self._engine) as session:
                result = await session.execute(select(IndexRecord).order_by(IndexRecord.name))
                records = list(result.scalars().all())
                return [await self._record_to_index(session, record) for record in records]

    async def delete(self, index_id: str) -> None:
        """Delete the index and, in the same transaction, every document it owns."""
        if not index_id:
            raise InvalidEntityError("index ID cannot be empty")
        with translate_errors("delete index"):
            async with AsyncSession(self._engine) as session:
                async with session.begin():
                    record = await session.get(IndexRecord, index_id)
                    if record is None:
                        return
                    owned = select(DocumentRecord.id).where(DocumentRecord.index_id == index_id)
                    await session.execute(
                        delete(DocumentKeywordRecord).where(DocumentKeywordRecord.document_id.in_(owned))
                    )
                    await session.execute(delete(DocumentLinkRecord).where(DocumentLinkRecord.source_id.in_(owned)))
                    await session.execute(
                        delete(DocumentMetadataRecord).where(DocumentMetadataRecord.document_id.in_(owned))
                    )
                    await session.execute(delete(DocumentRecord).where(DocumentRecord.index_id == index_id))
                    await session.delete(record)
        self._logger.info("index_deleted", index_id=index_id)

    async def update(self, index: Index) -> None:
        if not index.id:
            raise InvalidEntityError("index ID cannot be empty")
        index.ensure_valid()
        index_id = index.id
        index.last_updated = utc_now()
        updated = self._index_to_record(index, index_id, index.status)
        try:
            async with AsyncSession(self._engine) as session:
                async with session.begin():
                    existing = await session.get(IndexRecord, index_id)
                    if existing is None:
                        raise IndexNotFoundError(index_id)
                    for name, value in updated.model_dump(exclude={"id", "created_at"}).items():
                        setattr(existing, name, value)
        except IntegrityError as e:
            if is_unique_violation(e):
                raise IndexAlreadyExistsError(index.name) from e
            raise BackendError(f"failed to update index: {e}") from e
        except SQLAlchemyError as e:
            raise BackendError(f"failed to update index: {e}") from e
        self._logger.info("index_updated", index_id=index_id)

    async def update_settings(self, index_id: str, settings: IndexSettings) -> None:
        if not index_id:
            raise InvalidEntityError("index ID cannot be empty")
        with translate_errors("update index settings"):
            async with AsyncSession(self._engine) as session:
                async with session.begin():
                    existing = await session.get(IndexRecord, index_id)
                    if existing is None:
                        raise IndexNotFoundError(index_id)
                    existing.settings = settings.model_dump_json()
                    existing.last_updated = utc_now()
        self._logger.info("index_settings_updated", index_id=index_id)

    async def get_stats(self, index_id: str) -> dict[str, Any]:
        index = await self.get_by_id(index_id)
        if index is None:
            raise IndexNotFoundError(index_id)
        with translate_errors("collect index stats"):
            async with AsyncSession(self._engine) as session:
                keyword_count = await session.execute(
                    select(func.count())
                    .select_from(DocumentKeywordRecord)
                    .join(DocumentRecord, DocumentKeywordRecord.document_id == DocumentRecord.id)
                    .where(DocumentRecord.index_id == index_id)
                )
                link_count = await session.execute(
                    select(func.count())
                    .select_from(DocumentLinkRecord)
                    .join(DocumentRecord, DocumentLinkRecord.source_id == DocumentRecord.id)
                    .where(DocumentRecord.index_id == index_id)
                )
                return {
                    "document_count": index.document_count,
                    "keyword_count": int(keyword_count.scalar_one()),
                    "link_count": int(link_count.scalar_one()),
                    "status": index.status.value,
                }

    async def refresh_index(self, index_id: str) -> None:
        # Committed rows are already visible; only existence is checked.
        if await self.get_by_id(index_id) is None:
            raise IndexNotFoundError(index_id)
        self._logger.debug("index_refreshed", index_id=index_id)

    def _index_to_record(self, index: Index, index_id: str, status: IndexStatus) -> IndexRecord:
        return IndexRecord.model_validate(
            {
                "id": index_id,
                "schema_version": index.schema_version,
                "name": index.name,
                "description": index.description,
                "status": status.value,
                "settings": index.settings.model_dump_json(),
                "mappings": json.dumps(index.document_mapping),
                "created_at": index.created_at,
                "last_updated": index.last_updated,
            }
        )

    async def _record_to_index(self, session: AsyncSession, record: IndexRecord) -> Index:
        count = await session.execute(
            select(func.count()).select_from(DocumentRecord).where(DocumentRecord.index_id == record.id)
        )
        return Index.model_validate(
            {
                "id": record.id,
                "schema_version": record.schema_version,
                "name": record.name,
                "description": record.description,
                "status": IndexStatus(record.status),
                "settings": IndexSettings.model_validate_json(record.settings),
                "document_mapping": json.loads(record.mappings),
                "created_at": as_utc(record.created_at),
                "last_updated": as_utc(record.last_updated),
                "document_count": int(count.scalar_one()),
            }
        )
