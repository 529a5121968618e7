"""Repository ports for document and index persistence.

Domain and service code depend only on these abstract classes; concrete
adapters (Elasticsearch, relational database) are chosen at startup.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from typing import Any

from intelliindex.models.document import Document
from intelliindex.models.index import Index, IndexSettings
from intelliindex.models.query import SearchQuery

DEFAULT_PAGE = 1
MIN_PAGE_SIZE = 1
MAX_PAGE_SIZE = 100


def clamp_pagination(page: int, page_size: int) -> tuple[int, int]:
    """Clamp page to >= 1 and page_size to [1, 100]."""
    page = max(page, DEFAULT_PAGE)
    page_size = min(max(page_size, MIN_PAGE_SIZE), MAX_PAGE_SIZE)
    return page, page_size


class DocumentRepository(ABC):
    """Storage contract for documents."""

    @abstractmethod
    async def save(self, document: Document) -> None:
        """Persist a new document, assigning an ID if it has none."""

    @abstractmethod
    async def get_by_id(self, document_id: str) -> Document | None:
        """Return the document, or None if it does not exist."""

    @abstractmethod
    async def get_by_url(self, url: str) -> Document | None:
        """Return the document stored under the (normalized) URL, or None."""

    @abstractmethod
    async def delete(self, document_id: str) -> None:
        """Delete a document and everything it owns. Missing documents are ignored."""

    @abstractmethod
    async def update(self, document: Document) -> None:
        """Overwrite an existing document.

        Raises:
            DocumentNotFoundError: If no document with this ID exists.
        """

    @abstractmethod
    async def list(self, page: int, page_size: int) -> tuple[list[Document], int]:
        """Return one page of documents, newest crawl first, and the total count."""

    @abstractmethod
    async def search(self, query: SearchQuery) -> tuple[list[Document], int]:
        """Run a search query. No adapter implements ranking yet."""

    @abstractmethod
    async def count_by_index_id(self, index_id: str) -> int:
        """Count the documents owned by an index."""


class IndexRepository(ABC):
    """Storage contract for indices."""

    @abstractmethod
    async def create(self, index: Index) -> None:
        """Provision a new index and mark it active."""

    @abstractmethod
    async def get_by_id(self, index_id: str) -> Index | None:
        """Return the index with a freshly computed document count, or None."""

    @abstractmethod
    async def get_by_name(self, name: str) -> Index | None:
        """Return the index with the given unique name, or None."""

    @abstractmethod
    async def list(self) -> list[Index]:
        """Return all indices ordered by name."""

    @abstractmethod
    async def delete(self, index_id: str) -> None:
        """Delete an index and every document it owns. Missing indices are ignored."""

    @abstractmethod
    async def update(self, index: Index) -> None:
        """Overwrite an existing index's metadata."""

    @abstractmethod
    async def update_settings(self, index_id: str, settings: IndexSettings) -> None:
        """Replace the settings of an existing index."""

    @abstractmethod
    async def get_stats(self, index_id: str) -> dict[str, Any]:
        """Return backend-specific statistics for an index."""

    @abstractmethod
    async def refresh_index(self, index_id: str) -> None:
        """Make recent writes to the index visible to readers."""

    async def close(self) -> None:
        """Release background resources owned by the repository."""
        return None
