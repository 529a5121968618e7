"""Index repository backed by Elasticsearch.

Each logical index owns a physical Elasticsearch index named after its ID.
Index metadata (name, status, settings, field mapping) is kept as one
document per index in a separate ``indices-metadata`` index. Document counts
are never stored; they are recomputed from the documents index on read.
"""

from __future__ import annotations

import asyncio
from typing import Any
from uuid import uuid4

import structlog

from intelliindex.config import parse_duration
from intelliindex.errors import (
    IndexAlreadyExistsError,
    IndexNotFoundError,
    IntelliIndexError,
    InvalidEntityError,
)
from intelliindex.models.base import utc_now
from intelliindex.models.enums import IndexStatus
from intelliindex.models.index import Index, IndexSettings
from intelliindex.repositories.base import IndexRepository
from intelliindex.services.auto_refresh import AutoRefreshScheduler
from intelliindex.services.elastic_client import ElasticClient
from intelliindex.services.elastic_documents import DOCUMENTS_INDEX

METADATA_INDEX = "indices-metadata"
MAX_LISTED_INDICES = 10_000

METADATA_MAPPING: dict[str, Any] = {
    "properties": {
        "name": {
            "type": "text",
            "fields": {"keyword": {"type": "keyword", "ignore_above": 256}},
        },
        "description": {"type": "text"},
        "status": {"type": "keyword"},
        "created_at": {"type": "date"},
        "last_updated": {"type": "date"},
        "settings": {"type": "object", "enabled": False},
        "document_mapping": {"type": "object", "enabled": False},
    }
}

DEFAULT_INDEX_MAPPING: dict[str, Any] = {
    "properties": {
        "url": {"type": "keyword", "ignore_above": 2048},
        "title": {"type": "text"},
        "content": {"type": "text"},
        "lang": {"type": "keyword"},
        "last_crawled": {"type": "date"},
    }
}

# ISO 639-1 codes to the names of Elasticsearch's predefined stopword lists.
LANGUAGE_NAMES = {
    "ar": "arabic",
    "bg": "bulgarian",
    "bn": "bengali",
    "ca": "catalan",
    "cs": "czech",
    "da": "danish",
    "de": "german",
    "el": "greek",
    "en": "english",
    "es": "spanish",
    "eu": "basque",
    "fa": "persian",
    "fi": "finnish",
    "fr": "french",
    "ga": "irish",
    "gl": "galician",
    "hi": "hindi",
    "hu": "hungarian",
    "hy": "armenian",
    "id": "indonesian",
    "it": "italian",
    "lt": "lithuanian",
    "lv": "latvian",
    "nl": "dutch",
    "no": "norwegian",
    "pt": "portuguese",
    "ro": "romanian",
    "ru": "russian",
    "sv": "swedish",
    "th": "thai",
    "tr": "turkish",
}


def stopword_set(language: str) -> str:
    """Return the predefined stopword list name, e.g. ``en`` -> ``_english_``."""
    code = language.strip().lower()
    return f"_{LANGUAGE_NAMES.get(code, code)}_"


def build_index_settings(settings: IndexSettings) -> dict[str, Any]:
    """Translate domain IndexSettings into an Elasticsearch settings body."""
    body: dict[str, Any] = {
        "number_of_shards": settings.shards,
        "number_of_replicas": settings.replicas,
    }
    if settings.refresh_interval:
        body["refresh_interval"] = settings.refresh_interval

    analysis: dict[str, Any] = {}
    if settings.languages:
        analysis["analyzer"] = {
            f"{language}_analyzer": {"type": "standard", "stopwords": stopword_set(language)}
            for language in settings.languages
        }
    if settings.stopwords:
        analysis["filter"] = {"custom_stop": {"type": "stop", "stopwords": list(settings.stopwords)}}
    # User-supplied analysis sections win over the generated ones.
    analysis.update(settings.analyzer_settings)
    if analysis:
        body["analysis"] = analysis
    return body


def build_dynamic_settings(settings: IndexSettings) -> dict[str, Any]:
    """Settings that may be changed on an open index."""
    return {
        "number_of_replicas": settings.replicas,
        "refresh_interval": settings.refresh_interval or None,
    }


class ElasticIndexRepository(IndexRepository):
    """Manages physical indices, their metadata records and auto-refresh timers."""

    def __init__(
        self,
        client: ElasticClient,
        refresh_timeout: float = 30.0,
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._client = client
        self._logger = logger or structlog.get_logger(__name__)
        self._scheduler = AutoRefreshScheduler(self.refresh_index, timeout=refresh_timeout, logger=self._logger)
        self._metadata_ready = False
        self._metadata_lock = asyncio.Lock()

    @property
    def scheduler(self) -> AutoRefreshScheduler:
        return self._scheduler

    async def create(self, index: Index) -> None:
        """Provision the physical index and record its metadata.

        Raises:
            IndexAlreadyExistsError: If an index with the same name is recorded.
        """
        index.ensure_valid()
        if await self.get_by_name(index.name) is not None:
            raise IndexAlreadyExistsError(index.name)
        if index.id is None:
            index.id = str(uuid4())

        await self._client.create_index(
            index.id,
            settings=build_index_settings(index.settings),
            mappings=DEFAULT_INDEX_MAPPING,
        )
        index.update_status(IndexStatus.ACTIVE)
        await self._save_metadata(index)
        self._logger.info("index_created", index_id=index.id, name=index.name)

        try:
            await self.setup_auto_refresh(index.id)
        except IntelliIndexError as e:
            self._logger.warning("auto_refresh_setup_failed", index_id=index.id, error=str(e))

    async def get_by_id(self, index_id: str) -> Index | None:
        if not index_id:
            raise InvalidEntityError("index ID cannot be empty")
        await self._ensure_metadata_index()
        source = await self._client.get_document(METADATA_INDEX, index_id)
        if source is None:
            return None
        return await self._from_source(index_id, source)

    async def get_by_name(self, name: str) -> Index | None:
        if not name:
            raise InvalidEntityError("index name cannot be empty")
        await self._ensure_metadata_index()
        body = await self._client.search(METADATA_INDEX, {"term": {"name.keyword": name}}, size=1)
        hits = body["hits"]["hits"]
        if not hits:
            return None
        return await self._from_source(hits[0]["_id"], hits[0]["_source"])

    async def list(self) -> list[Index]:
        await self._ensure_metadata_index()
        body = await self._client.search(
            METADATA_INDEX,
            {"match_all": {}},
            sort=[{"name.keyword": {"order": "asc"}}],
            size=MAX_LISTED_INDICES,
        )
        return [await self._from_source(hit["_id"], hit["_source"]) for hit in body["hits"]["hits"]]

    async def delete(self, index_id: str) -> None:
        if not index_id:
            raise InvalidEntityError("index ID cannot be empty")
        self.stop_auto_refresh(index_id)
        await self._ensure_metadata_index()
        if await self._client.get_document(METADATA_INDEX, index_id) is None:
            return

        removed = await self._client.delete_by_query(DOCUMENTS_INDEX, {"term": {"index_id": index_id}})
        await self._client.delete_index(index_id)
        await self._client.delete_document(METADATA_INDEX, index_id, refresh=True)
        self._logger.info("index_deleted", index_id=index_id, documents_removed=removed)

    async def update(self, index: Index) -> None:
        if not index.id:
            raise InvalidEntityError("index ID cannot be empty")
        index.ensure_valid()
        await self._require(index.id)
        index.last_updated = utc_now()
        await self._save_metadata(index)
        self._logger.info("index_updated", index_id=index.id)
        await self._reconcile_auto_refresh(index.id)

    async def update_settings(self, index_id: str, settings: IndexSettings) -> None:
        index = await self._require(index_id)
        await self._client.put_settings(index_id, {"index": build_dynamic_settings(settings)})
        index.settings = settings
        index.last_updated = utc_now()
        await self._save_metadata(index)
        self._logger.info("index_settings_updated", index_id=index_id)
        await self._reconcile_auto_refresh(index_id)

    async def get_stats(self, index_id: str) -> dict[str, Any]:
        index = await self._require(index_id)
        stats = await self._client.index_stats(index_id)
        primaries = stats.get("_all", {}).get("primaries", {})
        return {
            "document_count": index.document_count,
            "status": index.status.value,
            "primaries_doc_count": primaries.get("docs", {}).get("count", 0),
            "store_size_bytes": primaries.get("store", {}).get("size_in_bytes", 0),
        }

    async def refresh_index(self, index_id: str) -> None:
        if not index_id:
            raise InvalidEntityError("index ID cannot be empty")
        if not await self._client.index_exists(index_id):
            raise IndexNotFoundError(index_id)
        await self._client.refresh_index(index_id)
        self._logger.debug("index_refreshed", index_id=index_id)

    async def setup_auto_refresh(self, index_id: str) -> None:
        """Start, replace or stop the refresh timer according to the stored interval.

        Raises:
            IndexNotFoundError: If the index does not exist.
            InvalidEntityError: If the stored interval cannot be parsed.
        """
        index = await self._require(index_id)
        if not index.settings.auto_refresh_enabled:
            self.stop_auto_refresh(index_id)
            return
        try:
            interval = parse_duration(index.settings.refresh_interval)
        except ValueError as e:
            raise InvalidEntityError(f"invalid refresh interval: {index.settings.refresh_interval!r}") from e
        if interval <= 0:
            raise InvalidEntityError(f"invalid refresh interval: {index.settings.refresh_interval!r}")
        self._scheduler.start(index_id, interval)

    def stop_auto_refresh(self, index_id: str) -> None:
        self._scheduler.stop(index_id)

    async def close(self) -> None:
        await self._scheduler.shutdown()

    async def _reconcile_auto_refresh(self, index_id: str) -> None:
        try:
            await self.setup_auto_refresh(index_id)
        except IntelliIndexError as e:
            self._logger.warning("auto_refresh_setup_failed", index_id=index_id, error=str(e))

    async def _require(self, index_id: str) -> Index:
        index = await self.get_by_id(index_id)
        if index is None:
            raise IndexNotFoundError(index_id)
        return index

    async def _ensure_metadata_index(self) -> None:
        if self._metadata_ready:
            return
        async with self._metadata_lock:
            if self._metadata_ready:
                return
            # Another process may create it between the check and the create.
            if not await self._client.index_exists(METADATA_INDEX):
                await self._client.create_index(
                    METADATA_INDEX,
                    settings={"number_of_shards": 1, "number_of_replicas": 0},
                    mappings=METADATA_MAPPING,
                    exist_ok=True,
                )
            self._metadata_ready = True

    async def _save_metadata(self, index: Index) -> None:
        await self._ensure_metadata_index()
        source = index.to_record()
        source.pop("id", None)
        source.pop("document_count", None)
        await self._client.index_document(METADATA_INDEX, index.id, source, refresh=True)

    async def _from_source(self, index_id: str, source: dict[str, Any]) -> Index:
        count = await self._client.count_documents(DOCUMENTS_INDEX, {"term": {"index_id": index_id}})
        return Index.from_record({**source, "id": index_id, "document_count": count})
