"""intelliindex - Document and index persistence for a search engine, backed by Elasticsearch or SQL."""

from importlib.metadata import version, PackageNotFoundError

try:
    __version__ = version("intelliindex")
except PackageNotFoundError:
    __version__ = "unknown"

__all__ = ["__version__"]
