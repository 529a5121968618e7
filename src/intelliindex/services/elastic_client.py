"""Thin async wrapper around the Elasticsearch client.

All index names passed to ElasticClient are logical names; the configured
prefix is applied here so repositories never build physical names themselves.
"""

from collections.abc import Iterator
from contextlib import contextmanager
from typing import Any

import structlog
from elasticsearch import ApiError, AsyncElasticsearch, TransportError

from intelliindex.config import ElasticConfig
from intelliindex.errors import BackendError

RETRY_ON_STATUS = (502, 503, 504, 429)
RESOURCE_ALREADY_EXISTS = "resource_already_exists_exception"


def create_es_client(cfg: ElasticConfig | None = None) -> AsyncElasticsearch:
    """Create an AsyncElasticsearch client from configuration.

    Basic auth is used only when both username and password are set.
    Transient gateway errors and throttling responses are retried.
    """
    if cfg is None:
        cfg = ElasticConfig()

    kwargs: dict[str, Any] = {
        "hosts": [cfg.url],
        "verify_certs": cfg.verify_certs,
        "request_timeout": cfg.timeout,
        "max_retries": cfg.max_retries,
        "retry_on_status": RETRY_ON_STATUS,
        "retry_on_timeout": True,
    }
    password = cfg.password.get_secret_value()
    if cfg.username and password:
        kwargs["basic_auth"] = (cfg.username, password)
    return AsyncElasticsearch(**kwargs)


@contextmanager
def _backend_errors(action: str, index: str) -> Iterator[None]:
    try:
        yield
    except (ApiError, TransportError) as e:
        raise BackendError(f"failed to {action} on {index}: {e}") from e


def _error_type(body: Any) -> str:
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return error.get("type", "")
    return ""


class ElasticClient:
    """Prefix-aware facade over AsyncElasticsearch."""

    def __init__(
        self,
        es: AsyncElasticsearch,
        index_prefix: str = "",
        logger: structlog.stdlib.BoundLogger | None = None,
    ) -> None:
        self._es = es
        self._index_prefix = index_prefix
        self._logger = logger or structlog.get_logger(__name__)

    @property
    def raw(self) -> AsyncElasticsearch:
        return self._es

    def index_name(self, name: str) -> str:
        if not self._index_prefix:
            return name
        return f"{self._index_prefix}-{name}"

    async def ping(self) -> bool:
        try:
            return bool(await self._es.ping())
        except (ApiError, TransportError) as e:
            self._logger.warning("elasticsearch_ping_failed", error=str(e))
            return False

    async def index_document(
        self, index: str, doc_id: str, document: dict[str, Any], refresh: bool = False
    ) -> None:
        name = self.index_name(index)
        with _backend_errors("index document", name):
            await self._es.index(index=name, id=doc_id, document=document, refresh=refresh)

    async def get_document(self, index: str, doc_id: str) -> dict[str, Any] | None:
        """Return the stored ``_source`` or None when the document (or index) is missing."""
        name = self.index_name(index)
        with _backend_errors("get document", name):
            resp = await self._es.options(ignore_status=404).get(index=name, id=doc_id)
        if resp.meta.status == 404 or not resp.body.get("found", False):
            return None
        return resp.body["_source"]

    async def update_document(
        self, index: str, doc_id: str, partial: dict[str, Any], refresh: bool = False
    ) -> None:
        name = self.index_name(index)
        with _backend_errors("update document", name):
            await self._es.update(index=name, id=doc_id, doc=partial, refresh=refresh)

    async def delete_document(self, index: str, doc_id: str, refresh: bool = False) -> bool:
        """Delete a document. Returns False if it did not exist."""
        name = self.index_name(index)
        with _backend_errors("delete document", name):
            resp = await self._es.options(ignore_status=404).delete(index=name, id=doc_id, refresh=refresh)
        return resp.meta.status != 404

    async def document_exists(self, index: str, doc_id: str) -> bool:
        name = self.index_name(index)
        with _backend_errors("check document", name):
            return bool(await self._es.exists(index=name, id=doc_id))

    async def count_documents(self, index: str, query: dict[str, Any] | None = None) -> int:
        """Count matching documents; a missing index counts as empty."""
        name = self.index_name(index)
        with _backend_errors("count documents", name):
            resp = await self._es.options(ignore_status=404).count(index=name, query=query or {"match_all": {}})
        if resp.meta.status == 404:
            return 0
        return int(resp.body["count"])

    async def search(
        self,
        index: str,
        query: dict[str, Any],
        *,
        sort: list[dict[str, Any]] | None = None,
        from_: int = 0,
        size: int = 10,
    ) -> dict[str, Any]:
        name = self.index_name(index)
        with _backend_errors("search", name):
            resp = await self._es.search(
                index=name,
                query=query,
                sort=sort,
                from_=from_,
                size=size,
                track_total_hits=True,
            )
        return resp.body

    async def delete_by_query(self, index: str, query: dict[str, Any]) -> int:
        """Delete all matching documents and return how many were removed."""
        name = self.index_name(index)
        with _backend_errors("delete by query", name):
            resp = await self._es.options(ignore_status=404).delete_by_query(
                index=name, query=query, refresh=True, conflicts="proceed"
            )
        if resp.meta.status == 404:
            return 0
        return int(resp.body.get("deleted", 0))

    async def index_exists(self, index: str) -> bool:
        name = self.index_name(index)
        with _backend_errors("check index", name):
            return bool(await self._es.indices.exists(index=name))

    async def create_index(
        self,
        index: str,
        settings: dict[str, Any] | None = None,
        mappings: dict[str, Any] | None = None,
        exist_ok: bool = False,
    ) -> bool:
        """Create an index. Returns False if exist_ok is set and the index already existed."""
        name = self.index_name(index)
        es = self._es.options(ignore_status=400) if exist_ok else self._es
        with _backend_errors("create index", name):
            resp = await es.indices.create(index=name, settings=settings, mappings=mappings)
        if resp.meta.status == 400:
            if _error_type(resp.body) == RESOURCE_ALREADY_EXISTS:
                self._logger.debug("elasticsearch_index_already_exists", index=name)
                return False
            raise BackendError(f"failed to create index on {name}: {resp.body}")
        self._logger.info("elasticsearch_index_created", index=name)
        return True

    async def delete_index(self, index: str) -> None:
        name = self.index_name(index)
        with _backend_errors("delete index", name):
            await self._es.options(ignore_status=404).indices.delete(index=name)
        self._logger.info("elasticsearch_index_deleted", index=name)

    async def refresh_index(self, index: str) -> None:
        name = self.index_name(index)
        with _backend_errors("refresh index", name):
            await self._es.indices.refresh(index=name)

    async def put_settings(self, index: str, settings: dict[str, Any]) -> None:
        name = self.index_name(index)
        with _backend_errors("update settings", name):
            await self._es.indices.put_settings(index=name, settings=settings)

    async def index_stats(self, index: str) -> dict[str, Any]:
        name = self.index_name(index)
        with _backend_errors("fetch stats", name):
            resp = await self._es.indices.stats(index=name)
        return resp.body

    async def close(self) -> None:
        await self._es.close()
