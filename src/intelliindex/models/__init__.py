from intelliindex.models.document import Document, Keyword, compute_fingerprint
from intelliindex.models.enums import ContentType, IndexStatus, SearchType, SortOrder, StorageBackend
from intelliindex.models.index import Index, IndexSettings
from intelliindex.models.query import SearchQuery, TimeRange
from intelliindex.models.url import URL, normalize_url
from intelliindex.models.user import APIKey, User

__all__ = [
    "Document",
    "Keyword",
    "compute_fingerprint",
    "Index",
    "IndexSettings",
    "SearchQuery",
    "TimeRange",
    "User",
    "APIKey",
    "URL",
    "normalize_url",
    "ContentType",
    "IndexStatus",
    "SearchType",
    "SortOrder",
    "StorageBackend",
]
