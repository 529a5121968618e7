"""Shared fixtures for service tests.

FakeElasticsearch implements the slice of the AsyncElasticsearch API the
adapters call, backed by plain dictionaries.
"""

import copy
from types import SimpleNamespace
from typing import Any

import pytest

from intelliindex.services.database import MigrationHandler, create_async_engine_from_path
from intelliindex.services.elastic_client import ElasticClient


class FakeNotFound(Exception):
    """Raised for a 404 the caller did not ask to ignore."""


class FakeBadRequest(Exception):
    """Raised for a 400 the caller did not ask to ignore."""


class FakeResponse:
    def __init__(self, body: dict[str, Any] | None = None, status: int = 200) -> None:
        self.body = body or {}
        self.meta = SimpleNamespace(status=status)

    def __bool__(self) -> bool:
        return 200 <= self.meta.status < 300


def _field(name: str) -> str:
    return name.removesuffix(".keyword")


def _matches(source: dict[str, Any], query: dict[str, Any]) -> bool:
    if "match_all" in query:
        return True
    if "term" in query:
        ((field, value),) = query["term"].items()
        return source.get(_field(field)) == value
    raise AssertionError(f"unsupported query: {query}")


class FakeIndices:
    def __init__(self, es: "FakeElasticsearch") -> None:
        self._es = es

    async def exists(self, index: str) -> FakeResponse:
        self._es._maybe_fail()
        return FakeResponse(status=200 if index in self._es.store else 404)

    async def create(
        self,
        index: str,
        settings: dict[str, Any] | None = None,
        mappings: dict[str, Any] | None = None,
    ) -> FakeResponse:
        self._es._maybe_fail()
        if index in self._es.store:
            body = {"error": {"type": "resource_already_exists_exception", "index": index}, "status": 400}
            if 400 in self._es._ignore_status:
                return FakeResponse(body, status=400)
            raise FakeBadRequest(body)
        self._es.store[index] = {}
        self._es.settings[index] = copy.deepcopy(settings or {})
        self._es.mappings[index] = copy.deepcopy(mappings or {})
        return FakeResponse({"acknowledged": True, "index": index})

    async def delete(self, index: str) -> FakeResponse:
        self._es._maybe_fail()
        if index not in self._es.store:
            return self._es._not_found()
        del self._es.store[index]
        self._es.settings.pop(index, None)
        self._es.mappings.pop(index, None)
        return FakeResponse({"acknowledged": True})

    async def refresh(self, index: str) -> FakeResponse:
        self._es._maybe_fail()
        if index not in self._es.store:
            return self._es._not_found()
        self._es.refresh_calls.append(index)
        return FakeResponse({"_shards": {"failed": 0}})

    async def put_settings(self, index: str, settings: dict[str, Any]) -> FakeResponse:
        self._es._maybe_fail()
        if index not in self._es.store:
            return self._es._not_found()
        self._es.put_settings_calls.append((index, copy.deepcopy(settings)))
        return FakeResponse({"acknowledged": True})

    async def stats(self, index: str) -> FakeResponse:
        self._es._maybe_fail()
        if index not in self._es.store:
            return self._es._not_found()
        docs = len(self._es.store[index])
        return FakeResponse(
            {"_all": {"primaries": {"docs": {"count": docs}, "store": {"size_in_bytes": docs * 100}}}}
        )


class FakeElasticsearch:
    def __init__(self) -> None:
        self.store: dict[str, dict[str, dict[str, Any]]] = {}
        self.settings: dict[str, dict[str, Any]] = {}
        self.mappings: dict[str, dict[str, Any]] = {}
        self.refresh_calls: list[str] = []
        self.put_settings_calls: list[tuple[str, dict[str, Any]]] = []
        self.fail_with: Exception | None = None
        self.reachable = True
        self.closed = False
        self._ignore_status: tuple[int, ...] = ()

    @property
    def indices(self) -> FakeIndices:
        return FakeIndices(self)

    def options(self, ignore_status: int | tuple[int, ...] = ()) -> "FakeElasticsearch":
        view = copy.copy(self)
        view._ignore_status = (ignore_status,) if isinstance(ignore_status, int) else tuple(ignore_status)
        return view

    def _maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    def _not_found(self) -> FakeResponse:
        if 404 in self._ignore_status:
            return FakeResponse({"error": "not_found"}, status=404)
        raise FakeNotFound()

    def _index(self, index: str) -> dict[str, dict[str, Any]]:
        return self.store.setdefault(index, {})

    async def ping(self) -> FakeResponse:
        return FakeResponse(status=200 if self.reachable else 503)

    async def index(self, index: str, id: str, document: dict[str, Any], refresh: bool = False) -> FakeResponse:
        self._maybe_fail()
        self._index(index)[id] = copy.deepcopy(document)
        return FakeResponse({"_id": id, "result": "created"}, status=201)

    async def get(self, index: str, id: str) -> FakeResponse:
        self._maybe_fail()
        source = self.store.get(index, {}).get(id)
        if source is None:
            if 404 in self._ignore_status:
                return FakeResponse({"_id": id, "found": False}, status=404)
            raise FakeNotFound()
        return FakeResponse({"_id": id, "found": True, "_source": copy.deepcopy(source)})

    async def update(self, index: str, id: str, doc: dict[str, Any], refresh: bool = False) -> FakeResponse:
        self._maybe_fail()
        if id not in self.store.get(index, {}):
            return self._not_found()
        self.store[index][id].update(copy.deepcopy(doc))
        return FakeResponse({"_id": id, "result": "updated"})

    async def delete(self, index: str, id: str, refresh: bool = False) -> FakeResponse:
        self._maybe_fail()
        if id not in self.store.get(index, {}):
            return self._not_found()
        del self.store[index][id]
        return FakeResponse({"_id": id, "result": "deleted"})

    async def exists(self, index: str, id: str) -> FakeResponse:
        self._maybe_fail()
        return FakeResponse(status=200 if id in self.store.get(index, {}) else 404)

    async def count(self, index: str, query: dict[str, Any]) -> FakeResponse:
        self._maybe_fail()
        if index not in self.store:
            return self._not_found()
        matched = [s for s in self.store[index].values() if _matches(s, query)]
        return FakeResponse({"count": len(matched)})

    async def search(
        self,
        index: str,
        query: dict[str, Any],
        sort: list[dict[str, Any]] | None = None,
        from_: int = 0,
        size: int = 10,
        track_total_hits: bool = False,
    ) -> FakeResponse:
        self._maybe_fail()
        if index not in self.store:
            return self._not_found()
        hits = [(doc_id, s) for doc_id, s in self.store[index].items() if _matches(s, query)]
        for clause in reversed(sort or []):
            ((field, options),) = clause.items()
            hits.sort(key=lambda h: h[1].get(_field(field)) or "", reverse=options.get("order") == "desc")
        page = hits[from_ : from_ + size]
        return FakeResponse(
            {
                "hits": {
                    "total": {"value": len(hits), "relation": "eq"},
                    "hits": [{"_index": index, "_id": i, "_source": copy.deepcopy(s)} for i, s in page],
                }
            }
        )

    async def delete_by_query(
        self, index: str, query: dict[str, Any], refresh: bool = False, conflicts: str = "abort"
    ) -> FakeResponse:
        self._maybe_fail()
        if index not in self.store:
            return self._not_found()
        doomed = [doc_id for doc_id, s in self.store[index].items() if _matches(s, query)]
        for doc_id in doomed:
            del self.store[index][doc_id]
        return FakeResponse({"deleted": len(doomed)})

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def fake_es() -> FakeElasticsearch:
    return FakeElasticsearch()


@pytest.fixture
def elastic_client(fake_es: FakeElasticsearch) -> ElasticClient:
    return ElasticClient(fake_es, index_prefix="test")  # type: ignore[arg-type]


@pytest.fixture
def async_engine():
    """Create an in-memory async SQLite engine for testing."""
    return create_async_engine_from_path(":memory:")


@pytest.fixture
async def migrated_engine(async_engine):
    """In-memory engine with the schema created."""
    await MigrationHandler(async_engine).run_migrations()
    yield async_engine
    await async_engine.dispose()
