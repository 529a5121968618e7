from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from intelliindex.errors import InvalidEntityError
from intelliindex.models.base import (
    RecordModel,
    coerce_datetime,
    ensure_id_str,
    ensure_metadata_dict,
    ensure_string_list,
    utc_now,
)
from intelliindex.models.enums import IndexStatus


class IndexSettings(BaseModel):
    shards: int = Field(default=1, ge=1)
    replicas: int = Field(default=0, ge=0)
    refresh_interval: str = ""
    analyzer_settings: dict[str, Any] = Field(default_factory=dict)
    stopwords: list[str] = Field(default_factory=list)
    languages: list[str] = Field(default_factory=lambda: ["en"])

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)

    @field_validator("analyzer_settings", mode="before")
    @classmethod
    def _normalize_analyzer_settings(cls, value: Any) -> dict[str, Any]:
        return ensure_metadata_dict(value)

    @field_validator("stopwords", "languages", mode="before")
    @classmethod
    def _normalize_lists(cls, value: Any) -> list[str]:
        return ensure_string_list(value)

    @property
    def auto_refresh_enabled(self) -> bool:
        return self.refresh_interval not in ("", "-1")


class Index(RecordModel):
    SCHEMA_VERSION: ClassVar[str] = "index.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    id: str | None = None
    name: str
    description: str = ""
    # Derived from the document store on read; not authoritative.
    document_count: int = Field(default=0, ge=0)
    created_at: datetime = Field(default_factory=utc_now)
    last_updated: datetime = Field(default_factory=utc_now)
    settings: IndexSettings = Field(default_factory=IndexSettings)
    status: IndexStatus = IndexStatus.CREATING
    document_mapping: dict[str, str] = Field(default_factory=dict)

    @classmethod
    def new(cls, name: str, description: str = "") -> "Index":
        """Create an index in the creating state with default settings.

        Raises:
            InvalidEntityError: If the name is empty.
        """
        if not name or not name.strip():
            raise InvalidEntityError("index name cannot be empty")
        now = utc_now()
        return cls(name=name, description=description, created_at=now, last_updated=now)

    @field_validator("id", mode="before")
    @classmethod
    def _normalize_id(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        return ensure_id_str(value)

    @field_validator("created_at", "last_updated", mode="before")
    @classmethod
    def _validate_timestamps(cls, value: Any) -> datetime:
        return coerce_datetime(value, "timestamp")

    @field_validator("settings", mode="before")
    @classmethod
    def _coerce_settings(cls, value: Any) -> IndexSettings:
        if isinstance(value, IndexSettings):
            return value
        if value is None:
            return IndexSettings()
        return IndexSettings.model_validate(value)

    def ensure_valid(self) -> None:
        if not self.name or not self.name.strip():
            raise InvalidEntityError("index name cannot be empty")

    def add_document_field(self, document_field: str, index_field: str) -> None:
        self.document_mapping = {**self.document_mapping, document_field: index_field}
        self.last_updated = utc_now()

    @property
    def is_active(self) -> bool:
        return self.status == IndexStatus.ACTIVE

    def update_status(self, status: IndexStatus) -> None:
        self.status = status
        self.last_updated = utc_now()

    def increment_document_count(self) -> None:
        self.document_count += 1
        self.last_updated = utc_now()

    def decrement_document_count(self) -> None:
        if self.document_count <= 0:
            return
        self.document_count -= 1
        self.last_updated = utc_now()
