"""SQLModel table definitions for the relational backend.

Kept separate from the Pydantic domain models: domain models validate and
carry behaviour, table models describe the schema. A document is spread over
four tables (document row, 1:1 metadata, 1:N keywords, 1:N outgoing links);
indices live in their own table with settings and field mappings stored as
serialized JSON text.

Field names follow the domain models where a column maps one-to-one, so
conversion can go through ``model_dump()`` / ``model_validate()``.
"""

from datetime import datetime
from typing import Any

from sqlalchemy import JSON, Column, DateTime, Text
from sqlmodel import Field, SQLModel

from intelliindex.models.base import utc_now


class IndexRecord(SQLModel, table=True):
    """Index row; ``settings`` and ``mappings`` hold JSON text."""

    __tablename__ = "indexes"

    id: str = Field(primary_key=True, max_length=36)
    schema_version: str
    name: str = Field(index=True, unique=True, max_length=255)
    description: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    status: str = Field(max_length=32)
    settings: str = Field(default="{}", sa_column=Column(Text, nullable=False))
    mappings: str = Field(default="{}", sa_column=Column(Text, nullable=False))
    created_at: datetime = Field(sa_type=DateTime(timezone=True))
    last_updated: datetime = Field(sa_type=DateTime(timezone=True))


class DocumentRecord(SQLModel, table=True):
    """Document row. Keywords, links and extracted metadata live in child tables."""

    __tablename__ = "documents"

    id: str = Field(primary_key=True, max_length=36)
    schema_version: str
    url: str = Field(index=True, unique=True, max_length=2048)
    title: str = Field(default="", max_length=512)
    content: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    content_type: str = Field(default="", max_length=100)
    content_fingerprint: str = Field(default="", max_length=128)
    last_crawled: datetime = Field(sa_type=DateTime(timezone=True))
    last_modified: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    lang: str = Field(default="", max_length=10)
    meta_desc: str = Field(default="", sa_column=Column(Text, nullable=False, default=""))
    status_code: int = 200
    content_length: int = 0
    importance_rank: float = 0.0
    index_id: str | None = Field(default=None, index=True, foreign_key="indexes.id", max_length=36)
    is_duplicate: bool = False
    original_doc_id: str | None = Field(default=None, max_length=36)
    version_count: int = 1
    current_version: int = 1
    parsed_content: dict[str, Any] = Field(default_factory=dict, sa_type=JSON)
    enhanced_keywords: list[dict[str, Any]] = Field(default_factory=list, sa_type=JSON)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class DocumentMetadataRecord(SQLModel, table=True):
    """Bibliographic fields extracted from a document's parsed content."""

    __tablename__ = "document_metadata"

    id: int | None = Field(default=None, primary_key=True)
    document_id: str = Field(unique=True, index=True, foreign_key="documents.id", max_length=36)
    author: str = Field(default="", max_length=255)
    publisher: str = Field(default="", max_length=255)
    category: str = Field(default="", max_length=100)
    license: str = Field(default="", max_length=100)
    created_date: datetime | None = Field(default=None, sa_type=DateTime(timezone=True))
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))
    updated_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class DocumentKeywordRecord(SQLModel, table=True):
    __tablename__ = "document_keywords"

    id: int | None = Field(default=None, primary_key=True)
    document_id: str = Field(index=True, foreign_key="documents.id", max_length=36)
    keyword: str = Field(index=True, max_length=100)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


class DocumentLinkRecord(SQLModel, table=True):
    __tablename__ = "document_links"

    id: int | None = Field(default=None, primary_key=True)
    source_id: str = Field(index=True, foreign_key="documents.id", max_length=36)
    target_url: str = Field(index=True, max_length=2048)
    created_at: datetime = Field(default_factory=utc_now, sa_type=DateTime(timezone=True))


TABLES = (
    IndexRecord,
    DocumentRecord,
    DocumentMetadataRecord,
    DocumentKeywordRecord,
    DocumentLinkRecord,
)
