"""Document repository backed by a single Elasticsearch index."""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import uuid4

import structlog

from intelliindex.errors import DocumentNotFoundError, InvalidEntityError
from intelliindex.models.document import Document
from intelliindex.models.query import SearchQuery
from intelliindex.models.url import normalize_url
from intelliindex.repositories.base import DocumentRepository, clamp_pagination
from intelliindex.services.elastic_client import ElasticClient

DOCUMENTS_INDEX = "documents"

DOCUMENTS_MAPPING: dict[str, Any] = {
    "properties": {
        "url": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 2048}},
        },
        "title": {"type": "text"},
        "content": {"type": "text"},
        "content_type": {"type": "keyword"},
        "content_fingerprint": {"type": "keyword"},
        "lang": {"type": "keyword"},
        "index_id": {"type": "keyword"},
        "original_doc_id": {"type": "keyword"},
        "last_crawled": {"type": "date"},
        "last_modified": {"type": "date"},
        "parsed_content": {"type": "object", "enabled": False},
    }
}


class ElasticDocumentRepository(DocumentRepository):
    """Stores each document as one Elasticsearch document keyed by its ID."""

    def __init__(
        self,
        client: ElasticClient,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._logger = logger or structlog.get_logger(__name__)
        self._index_ready = False
        self._index_lock = asyncio.Lock()

    async def ensure_index(self) -> None:
        """Create the documents index with its mapping if it is missing."""
        if self._index_ready:
            return
        async with self._index_lock:
            if self._index_ready:
                return
            if not await self._client.index_exists(DOCUMENTS_INDEX):
                await self._client.create_index(DOCUMENTS_INDEX, mappings=DOCUMENTS_MAPPING, exist_ok=True)
            self._index_ready = True

    async def save(self, document: Document) -> None:
        document.ensure_valid()
        await self.ensure_index()
        doc_id = document.id or str(uuid4())
        await self._client.index_document(DOCUMENTS_INDEX, doc_id, self._to_source(document), refresh=True)
        document.id = doc_id
        self._logger.debug("document_saved", document_id=doc_id, url=document.url)

    async def get_by_id(self, document_id: str) -> Document | None:
        if not document_id:
            raise InvalidEntityError("document ID cannot be empty")
        await self.ensure_index()
        source = await self._client.get_document(DOCUMENTS_INDEX, document_id)
        if source is None:
            return None
        return self._from_source(document_id, source)

    async def get_by_url(self, url: str) -> Document | None:
        if not url:
            raise InvalidEntityError("URL cannot be empty")
        await self.ensure_index()
        body = await self._client.search(
            DOCUMENTS_INDEX,
            {"term": {"url.keyword": normalize_url(url)}},
            size=1,
        )
        hits = body["hits"]["hits"]
        if not hits:
            return None
        return self._from_source(hits[0]["_id"], hits[0]["_source"])

    async def delete(self, document_id: str) -> None:
        if not document_id:
            raise InvalidEntityError("document ID cannot be empty")
        await self.ensure_index()
        deleted = await self._client.delete_document(DOCUMENTS_INDEX, document_id, refresh=True)
        if deleted:
            self._logger.debug("document_deleted", document_id=document_id)

    async def update(self, document: Document) -> None:
        if not document.id:
            raise InvalidEntityError("document ID cannot be empty")
        document.ensure_valid()
        await self.ensure_index()
        if not await self._client.document_exists(DOCUMENTS_INDEX, document.id):
            raise DocumentNotFoundError(document.id)
        await self._client.update_document(DOCUMENTS_INDEX, document.id, self._to_source(document), refresh=True)
        self._logger.debug("document_updated", document_id=document.id)

    async def list(self, page: int, page_size: int) -> tuple[list[Document], int]:
        page, page_size = clamp_pagination(page, page_size)
        await self.ensure_index()
        body = await self._client.search(
            DOCUMENTS_INDEX,
            {"match_all": {}},
            sort=[{"last_crawled": {"order": "desc"}}],
            from_=(page - 1) * page_size,
            size=page_size,
        )
        hits = body["hits"]
        documents = [self._from_source(hit["_id"], hit["_source"]) for hit in hits["hits"]]
        return documents, int(hits["total"]["value"])

    async def search(self, query: SearchQuery) -> tuple[list[Document], int]:
        raise NotImplementedError("document search is not implemented")

    async def count_by_index_id(self, index_id: str) -> int:
        await self.ensure_index()
        return await self._client.count_documents(DOCUMENTS_INDEX, {"term": {"index_id": index_id}})

    def _to_source(self, document: Document) -> dict[str, Any]:
        # Nulls are kept so partial updates can clear optional fields.
        source = document.model_dump(mode="json")
        source.pop("id", None)
        return source

    def _from_source(self, document_id: str, source: dict[str, Any]) -> Document:
        return Document.from_record({**source, "id": document_id})
