from datetime import datetime, timedelta, timezone

import pytest
from pydantic import ValidationError

from intelliindex.models.enums import SearchType, SortOrder
from intelliindex.models.query import SearchQuery, TimeRange


def test_query_defaults() -> None:
    query = SearchQuery.new("find me")

    assert query.schema_version == SearchQuery.SCHEMA_VERSION
    assert query.type == SearchType.SIMPLE
    assert query.page == 1
    assert query.page_size == 10
    assert query.sort_order == SortOrder.DESCENDING
    assert query.fuzzy_level == 1
    assert query.has_filters() is False


@pytest.mark.parametrize("text", ["", "   "])
def test_query_text_required(text: str) -> None:
    with pytest.raises(ValidationError):
        SearchQuery.new(text)


@pytest.mark.parametrize(
    "overrides",
    [{"page": 0}, {"page_size": 0}, {"page_size": 101}, {"fuzzy_level": 3}],
)
def test_query_rejects_out_of_range_values(overrides: dict) -> None:
    with pytest.raises(ValidationError):
        SearchQuery(query="find me", **overrides)


def test_query_has_filters() -> None:
    now = datetime.now(timezone.utc)

    assert SearchQuery(query="q", filters={"lang": "en"}).has_filters()
    assert SearchQuery(query="q", exact_terms=["python"]).has_filters()
    assert SearchQuery(query="q", time_range={"field": "last_crawled", "start": now}).has_filters()


def test_time_range_validates_order() -> None:
    now = datetime.now(timezone.utc)

    with pytest.raises(ValidationError):
        TimeRange(field="last_crawled", start=now, end=now - timedelta(days=1))


def test_time_range_requires_timezone_aware_datetime() -> None:
    with pytest.raises(ValidationError):
        TimeRange(field="last_crawled", start=datetime.now())


def test_query_record_round_trip() -> None:
    query = SearchQuery(
        query="python asyncio",
        type=SearchType.FUZZY,
        search_fields={"title": 2.0, "content": 1.0},
        time_range=TimeRange(field="last_crawled", start=datetime(2024, 1, 1, tzinfo=timezone.utc)),
    )

    assert SearchQuery.from_record(query.to_record()) == query
