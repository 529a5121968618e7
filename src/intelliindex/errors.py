"""Exception hierarchy shared by the domain model, adapters and wiring code."""


class IntelliIndexError(Exception):
    """Base class for all intelliindex errors."""


class InvalidEntityError(IntelliIndexError, ValueError):
    """A domain entity or argument failed validation before reaching a backend."""


class NotFoundError(IntelliIndexError, LookupError):
    """An operation required an entity that does not exist."""


class DocumentNotFoundError(NotFoundError):
    def __init__(self, document_id: str) -> None:
        super().__init__(f"document with ID {document_id} does not exist")
        self.document_id = document_id


class IndexNotFoundError(NotFoundError):
    def __init__(self, index_id: str) -> None:
        super().__init__(f"index with ID {index_id} does not exist")
        self.index_id = index_id


class AlreadyExistsError(IntelliIndexError):
    """A unique constraint was violated by a write."""


class DocumentAlreadyExistsError(AlreadyExistsError):
    def __init__(self, url: str) -> None:
        super().__init__(f"document with URL {url} already exists")
        self.url = url


class IndexAlreadyExistsError(AlreadyExistsError):
    def __init__(self, name: str) -> None:
        super().__init__(f"index with name {name} already exists")
        self.name = name


class BackendError(IntelliIndexError):
    """A storage backend call failed; the driver exception is chained as __cause__."""


class ConfigError(IntelliIndexError, ValueError):
    """Configuration could not be loaded or failed validation."""


class ContainerError(IntelliIndexError):
    """A dependency could not be constructed by the container."""


class NoFactoryError(ContainerError, LookupError):
    def __init__(self, name: str) -> None:
        super().__init__(f"no factory registered for {name!r}")
        self.name = name
