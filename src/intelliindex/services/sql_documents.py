"""Document repository backed by a relational database.

A document is spread across four tables: the document row itself, a 1:1
metadata row extracted from ``parsed_content``, and 1:N keyword and outgoing
link rows. Every write touches all of them inside a single transaction.
"""

from __future__ import annotations

from collections import defaultdict
from datetime import datetime, timezone
from typing import Any
from uuid import uuid4

import structlog
from sqlalchemy import delete, desc, func, select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession

from intelliindex.errors import (
    BackendError,
    DocumentAlreadyExistsError,
    DocumentNotFoundError,
    InvalidEntityError,
)
from intelliindex.models.base import utc_now
from intelliindex.models.document import Document
from intelliindex.models.query import SearchQuery
from intelliindex.models.tables import (
    DocumentKeywordRecord,
    DocumentLinkRecord,
    DocumentMetadataRecord,
    DocumentRecord,
)
from intelliindex.models.url import normalize_url
from intelliindex.repositories.base import DocumentRepository, clamp_pagination
from intelliindex.services.database import is_unique_violation, translate_errors

METADATA_TEXT_FIELDS = ("author", "publisher", "category", "license")
CREATED_DATE_KEY = "createdDate"
CREATED_DATE_FORMATS = (
    "%Y-%m-%d",
    "%Y-%m-%d %H:%M:%S",
    "%d/%m/%Y",
    "%B %d, %Y",
    "%d %B %Y",
)


def as_utc(value: datetime | None) -> datetime | None:
    """Attach UTC to naive datetimes read back from databases that drop the offset."""
    if value is None or value.tzinfo is not None:
        return value
    return value.replace(tzinfo=timezone.utc)


def parse_created_date(value: Any) -> datetime | None:
    """Parse a creation date found in parsed content.

    RFC 3339 / ISO 8601 is tried first, then a fixed list of common formats.
    Unparseable values yield None.
    """
    if not isinstance(value, str) or not value.strip():
        return None
    value = value.strip()
    try:
        return as_utc(datetime.fromisoformat(value))
    except ValueError:
        pass
    for fmt in CREATED_DATE_FORMATS:
        try:
            return as_utc(datetime.strptime(value, fmt))
        except ValueError:
            continue
    return None


def extract_metadata(document_id: str, parsed_content: dict[str, Any]) -> DocumentMetadataRecord:
    fields = {
        name: parsed_content[name]
        for name in METADATA_TEXT_FIELDS
        if isinstance(parsed_content.get(name), str)
    }
    return DocumentMetadataRecord(
        document_id=document_id,
        created_date=parse_created_date(parsed_content.get(CREATED_DATE_KEY)),
        **fields,
    )


class SqlDocumentRepository(DocumentRepository):
    """Persists documents through SQLModel tables using native async SQLAlchemy."""

    def __init__(
        self,
        engine: AsyncEngine,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._engine = engine
        self._logger = logger or structlog.get_logger(__name__)

    async def save(self, document: Document) -> None:
        document.ensure_valid()
        doc_id = document.id or str(uuid4())
        record = self._document_to_record(document, doc_id)
        try:
            async with AsyncSession(self._engine) as session:
                async with session.begin():
                    session.add(record)
                    # Parent row must exist before child rows reference it.
                    await session.flush()
                    session.add_all(self._child_records(document, doc_id))
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DocumentAlreadyExistsError(document.url) from e
            raise BackendError(f"failed to save document: {e}") from e
        except SQLAlchemyError as e:
            raise BackendError(f"failed to save document: {e}") from e

        document.id = doc_id
        self._logger.debug("document_saved", document_id=doc_id, url=document.url)

    async def get_by_id(self, document_id: str) -> Document | None:
        if not document_id:
            raise InvalidEntityError("document ID cannot be empty")
        with translate_errors("get document"):
            async with AsyncSession(self._engine) as session:
                record = await session.get(DocumentRecord, document_id)
                if record is None:
                    return None
                documents = await self._load_documents(session, [record])
        return documents[0]

    async def get_by_url(self, url: str) -> Document | None:
        if not url:
            raise InvalidEntityError("URL cannot be empty")
        normalized = normalize_url(url)
        with translate_errors("get document by URL"):
            async with AsyncSession(self._engine) as session:
                statement = select(DocumentRecord).where(DocumentRecord.url == normalized)
                result = await session.execute(statement)
                record = result.scalar_one_or_none()
                if record is None:
                    return None
                documents = await self._load_documents(session, [record])
        return documents[0]

    async def delete(self, document_id: str) -> None:
        if not document_id:
            raise InvalidEntityError("document ID cannot be empty")
        with translate_errors("delete document"):
            async with AsyncSession(self._engine) as session:
                async with session.begin():
                    record = await session.get(DocumentRecord, document_id)
                    if record is None:
                        return
                    await self._delete_children(session, [document_id])
                    await session.delete(record)
        self._logger.debug("document_deleted", document_id=document_id)

    async def update(self, document: Document) -> None:
        if not document.id:
            raise InvalidEntityError("document ID cannot be empty")
        document.ensure_valid()
        doc_id = document.id
        updated = self._document_to_record(document, doc_id)
        try:
            async with AsyncSession(self._engine) as session:
                async with session.begin():
                    existing = await session.get(DocumentRecord, doc_id)
                    if existing is None:
                        raise DocumentNotFoundError(doc_id)
                    for name, value in updated.model_dump(exclude={"id", "created_at"}).items():
                        setattr(existing, name, value)
                    existing.updated_at = utc_now()
                    await self._delete_children(session, [doc_id])
                    session.add_all(self._child_records(document, doc_id))
        except IntegrityError as e:
            if is_unique_violation(e):
                raise DocumentAlreadyExistsError(document.url) from e
            raise BackendError(f"failed to update document: {e}") from e
        except SQLAlchemyError as e:
            raise BackendError(f"failed to update document: {e}") from e
        self._logger.debug("document_updated", document_id=doc_id)

    async def list(self, page: int, page_size: int) -> tuple[list[Document], int]:
        page, page_size = clamp_pagination(page, page_size)
        with translate_errors("list documents"):
            async with AsyncSession(self._engine) as session:
                total = (await session.execute(select(func.count()).select_from(DocumentRecord))).scalar_one()
                statement = (
                    select(DocumentRecord)
                    .order_by(desc(DocumentRecord.last_crawled), DocumentRecord.id)
                    .offset((page - 1) * page_size)
                    .limit(page_size)
                )
                records = list((await session.execute(statement)).scalars().all())
                documents = await self._load_documents(session, records)
        return documents, int(total)

    async def search(self, query: SearchQuery) -> tuple[list[Document], int]:
        raise NotImplementedError("document search is not implemented")

    async def count_by_index_id(self, index_id: str) -> int:
        with translate_errors("count documents"):
            async with AsyncSession(self._engine) as session:
                statement = select(func.count()).select_from(DocumentRecord).where(DocumentRecord.index_id == index_id)
                return int((await session.execute(statement)).scalar_one())

    async def _load_documents(self, session: AsyncSession, records: list[DocumentRecord]) -> list[Document]:
        """Attach keyword and link rows to each record in two batched queries."""
        if not records:
            return []
        ids = [record.id for record in records]

        keywords: dict[str, list[str]] = defaultdict(list)
        statement = (
            select(DocumentKeywordRecord)
            .where(DocumentKeywordRecord.document_id.in_(ids))
            .order_by(DocumentKeywordRecord.id)
        )
        for row in (await session.execute(statement)).scalars():
            keywords[row.document_id].append(row.keyword)

        links: dict[str, list[str]] = defaultdict(list)
        statement = (
            select(DocumentLinkRecord).where(DocumentLinkRecord.source_id.in_(ids)).order_by(DocumentLinkRecord.id)
        )
        for row in (await session.execute(statement)).scalars():
            links[row.source_id].append(row.target_url)

        return [self._record_to_document(record, keywords[record.id], links[record.id]) for record in records]

    async def _delete_children(self, session: AsyncSession, document_ids: list[str]) -> None:
        await session.execute(delete(DocumentKeywordRecord).where(DocumentKeywordRecord.document_id.in_(document_ids)))
        await session.execute(delete(DocumentLinkRecord).where(DocumentLinkRecord.source_id.in_(document_ids)))
        await session.execute(
            delete(DocumentMetadataRecord).where(DocumentMetadataRecord.document_id.in_(document_ids))
        )

    def _child_records(self, document: Document, doc_id: str) -> list[Any]:
        children: list[Any] = [extract_metadata(doc_id, document.parsed_content)]
        children.extend(
            DocumentKeywordRecord(document_id=doc_id, keyword=keyword) for keyword in document.meta_keywords if keyword
        )
        children.extend(DocumentLinkRecord(source_id=doc_id, target_url=link) for link in document.links if link)
        return children

    def _document_to_record(self, document: Document, doc_id: str) -> DocumentRecord:
        """Convert a domain Document to its table row.

        Keywords and links are stored in child tables, not on the row. JSON
        columns get JSON-compatible values, so dates in parsed content become
        ISO strings.
        """
        data = document.model_dump(exclude={"meta_keywords", "links", "score"})
        data.update(document.model_dump(mode="json", include={"parsed_content", "enhanced_keywords"}))
        data["id"] = doc_id
        data["content_type"] = str(document.content_type)
        return DocumentRecord.model_validate(data)

    def _record_to_document(self, record: DocumentRecord, keywords: list[str], links: list[str]) -> Document:
        """Convert a table row back to a domain Document.

        SQLite doesn't preserve timezone info, so UTC is restored.
        """
        data = record.model_dump(exclude={"created_at", "updated_at"})
        data["last_crawled"] = as_utc(data["last_crawled"])
        data["last_modified"] = as_utc(data["last_modified"])
        data["meta_keywords"] = keywords
        data["links"] = links
        return Document.model_validate(data)
