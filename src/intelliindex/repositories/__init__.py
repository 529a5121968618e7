from intelliindex.repositories.base import (
    MAX_PAGE_SIZE,
    DocumentRepository,
    IndexRepository,
    clamp_pagination,
)

__all__ = [
    "DocumentRepository",
    "IndexRepository",
    "clamp_pagination",
    "MAX_PAGE_SIZE",
]
