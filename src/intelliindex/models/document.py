import hashlib
from datetime import datetime
from typing import Any, ClassVar

from pydantic import BaseModel, ConfigDict, Field, field_validator

from intelliindex.errors import InvalidEntityError
from intelliindex.models.base import (
    RecordModel,
    coerce_datetime,
    ensure_hex_digest,
    ensure_id_str,
    ensure_metadata_dict,
    ensure_string_list,
    utc_now,
)
from intelliindex.models.enums import ContentType
from intelliindex.models.url import URL, normalize_url


class Keyword(BaseModel):
    text: str
    score: float = 0.0
    is_domain_specific: bool = False
    category: str = ""
    position: int = Field(default=0, ge=0)

    model_config = ConfigDict(frozen=True, extra="forbid", populate_by_name=True)


def compute_fingerprint(content: str) -> str:
    return hashlib.sha256(content.encode()).hexdigest()


class Document(RecordModel):
    SCHEMA_VERSION: ClassVar[str] = "document.v1"

    schema_version: str = Field(default=SCHEMA_VERSION)
    id: str | None = None
    url: str
    title: str = ""
    content: str = ""
    content_type: ContentType | str = ContentType.UNKNOWN
    content_fingerprint: str = ""
    last_crawled: datetime = Field(default_factory=utc_now)
    last_modified: datetime | None = None
    lang: str = ""
    meta_desc: str = ""
    meta_keywords: list[str] = Field(default_factory=list)
    enhanced_keywords: list[Keyword] = Field(default_factory=list)
    links: list[str] = Field(default_factory=list)
    status_code: int = 200
    content_length: int = Field(default=0, ge=0)
    importance_rank: float = 0.0
    index_id: str | None = None
    is_duplicate: bool = False
    original_doc_id: str | None = None
    version_count: int = Field(default=1, ge=1)
    current_version: int = Field(default=1, ge=1)
    parsed_content: dict[str, Any] = Field(default_factory=dict)
    # Search-time relevance; never written to storage.
    score: float = Field(default=0.0, exclude=True)

    @classmethod
    def new(cls, url: str, title: str = "", content: str = "", content_type: str = "") -> "Document":
        """Create a fresh document with a normalized URL and version 1.

        Raises:
            InvalidEntityError: If the URL is empty or cannot be parsed.
        """
        if not url:
            raise InvalidEntityError("URL cannot be empty")
        try:
            parsed = URL.parse(url)
        except InvalidEntityError as e:
            raise InvalidEntityError(f"invalid URL: {e}") from e
        return cls(
            url=parsed.normalized,
            title=title,
            content=content,
            content_type=ContentType.parse(content_type),
        )

    @field_validator("id", "index_id", "original_doc_id", mode="before")
    @classmethod
    def _normalize_ids(cls, value: Any) -> str | None:
        if value is None or value == "":
            return None
        return ensure_id_str(value)

    @field_validator("url")
    @classmethod
    def _normalize_url(cls, value: str) -> str:
        # Empty URLs are reported by ensure_valid() so repositories can reject them
        # before any backend call.
        if not value:
            return value
        return normalize_url(value)

    @field_validator("content_type", mode="before")
    @classmethod
    def _parse_content_type(cls, value: Any) -> ContentType | str:
        if isinstance(value, ContentType):
            return value
        return ContentType.parse(value)

    @field_validator("content_fingerprint", mode="before")
    @classmethod
    def _validate_fingerprint(cls, value: Any) -> str:
        if value is None or value == "":
            return ""
        return ensure_hex_digest(value)

    @field_validator("last_crawled", mode="before")
    @classmethod
    def _validate_last_crawled(cls, value: Any) -> datetime:
        return coerce_datetime(value, "last_crawled")

    @field_validator("last_modified", mode="before")
    @classmethod
    def _validate_last_modified(cls, value: Any) -> datetime | None:
        if value is None:
            return None
        return coerce_datetime(value, "last_modified")

    @field_validator("meta_keywords", "links", mode="before")
    @classmethod
    def _normalize_lists(cls, value: Any) -> list[str]:
        return ensure_string_list(value)

    @field_validator("parsed_content", mode="before")
    @classmethod
    def _normalize_parsed_content(cls, value: Any) -> dict[str, Any]:
        return ensure_metadata_dict(value)

    def update_content(self, content: str, fingerprint: str | None = None) -> bool:
        """Replace the content and bump the version if it actually changed.

        Returns:
            True if the document changed, False if the content was identical.
        """
        if self.content == content:
            return False
        self.content = content
        self.content_fingerprint = fingerprint or compute_fingerprint(content)
        self.last_modified = utc_now()
        self.version_count += 1
        self.current_version = self.version_count
        return True

    def mark_as_duplicate(self, original_doc_id: str) -> None:
        self.is_duplicate = True
        self.original_doc_id = original_doc_id

    def set_content_fingerprint(self, fingerprint: str) -> None:
        self.content_fingerprint = fingerprint

    def ensure_valid(self) -> None:
        if not self.url:
            raise InvalidEntityError("document URL cannot be empty")
