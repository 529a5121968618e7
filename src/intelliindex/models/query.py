from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator, model_validator

from intelliindex.models.base import (
    RecordModel,
    coerce_datetime,
    ensure_metadata_dict,
    ensure_non_empty_text,
)
from intelliindex.models.enums import SearchType, SortOrder


class TimeRange(BaseModel):
    field: str
    start: datetime | None = None
    end: datetime | None = None
    included: bool = True

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("start", "end", mode="before")
    @classmethod
    def _validate_bounds(cls, value: Any) -> datetime | None:
        if value is None:
            return None
        return coerce_datetime(value, "time range bound")

    @model_validator(mode="after")
    def _validate_order(self) -> "TimeRange":
        if self.start is not None and self.end is not None and self.end < self.start:
            raise ValueError("end must be greater than or equal to start")
        return self


class SearchQuery(RecordModel):
    SCHEMA_VERSION: ClassVar[str] = "search_query.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    query: str
    type: SearchType = SearchType.SIMPLE
    filters: dict[str, Any] = Field(default_factory=dict)
    page: int = Field(default=1, ge=1)
    page_size: int = Field(default=10, ge=1, le=100)
    sort_fields: list[str] = Field(default_factory=list)
    sort_order: SortOrder = SortOrder.DESCENDING
    include_fields: list[str] = Field(default_factory=list)
    exclude_fields: list[str] = Field(default_factory=list)
    highlight_fields: list[str] = Field(default_factory=list)
    time_range: TimeRange | None = None
    language: str = ""
    fuzzy_level: int = Field(default=1, ge=0, le=2)
    minimum_should_match: str = ""
    exact_terms: list[str] = Field(default_factory=list)
    search_fields: dict[str, float] = Field(default_factory=dict)
    skip_diversification: bool = False
    use_search_after: bool = False
    metadata: dict[str, Any] = Field(default_factory=dict)

    @classmethod
    def new(cls, text: str) -> "SearchQuery":
        return cls(query=text)

    @field_validator("query")
    @classmethod
    def _validate_query(cls, value: str) -> str:
        return ensure_non_empty_text(value, "query")

    @field_validator("filters", "metadata", mode="before")
    @classmethod
    def _normalize_maps(cls, value: Any) -> dict[str, Any]:
        return ensure_metadata_dict(value)

    @field_validator("time_range", mode="before")
    @classmethod
    def _coerce_time_range(cls, value: Any) -> TimeRange | None:
        if value is None or isinstance(value, TimeRange):
            return value
        return TimeRange.model_validate(value)

    def has_filters(self) -> bool:
        return any(
            value not in (None, {}, [])
            for value in (
                self.filters,
                self.time_range,
                self.exact_terms,
            )
        )


__all__ = ["SearchQuery", "TimeRange"]
