"""Application configuration.

Settings are assembled from, in order of precedence: a YAML file, process
environment variables (``INTELLIINDEX_`` prefix, ``__`` between nested keys,
optionally seeded from a ``.env`` file) and the defaults below.
"""

import re
from pathlib import Path
from typing import Any

import structlog
import yaml
from dotenv import load_dotenv
from pydantic import BaseModel, Field, SecretStr, ValidationError, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from intelliindex.errors import ConfigError
from intelliindex.models.enums import StorageBackend

CONFIG_FILE_CANDIDATES = ("config.yaml", "config.yml", "configs/config.yaml")
DEFAULT_SQLITE_PATH = "intelliindex.db"

_DURATION_PATTERN = re.compile(r"^(\d+(?:\.\d+)?)(ms|s|m|h|d)?$")
_UNIT_SECONDS = {"ms": 0.001, "s": 1.0, "m": 60.0, "h": 3600.0, "d": 86400.0, None: 1.0}

_SERVER_DATABASE_TYPES = {"postgres", "postgresql", "mysql"}
_SUPPORTED_DATABASE_TYPES = _SERVER_DATABASE_TYPES | {"sqlite"}

logger = structlog.get_logger(__name__)


def parse_duration(value: Any) -> float:
    """Convert a duration to seconds.

    Accepts plain numbers (seconds) or strings with an optional unit suffix,
    e.g. ``"500ms"``, ``"30s"``, ``"1m"``, ``"1h"``, ``"1d"``.

    Raises:
        ValueError: If the value is negative or not a recognised duration.
    """
    if isinstance(value, bool):
        raise ValueError(f"invalid duration: {value!r}")
    if isinstance(value, (int, float)):
        if value < 0:
            raise ValueError(f"duration cannot be negative: {value!r}")
        return float(value)
    if isinstance(value, str):
        match = _DURATION_PATTERN.match(value.strip())
        if match:
            amount, unit = match.groups()
            return float(amount) * _UNIT_SECONDS[unit]
    raise ValueError(f"invalid duration: {value!r}")


class ServerConfig(BaseModel):
    port: int = Field(default=8080, ge=0, le=65535)
    shutdown_timeout: float = 5.0
    log_level: str = "info"

    @field_validator("shutdown_timeout", mode="before")
    @classmethod
    def _parse_shutdown_timeout(cls, value: Any) -> float:
        return parse_duration(value)


class ElasticConfig(BaseModel):
    url: str = "http://localhost:9200"
    username: str = ""
    password: SecretStr = SecretStr("")
    index_prefix: str = "search-engine"
    timeout: float = 30.0
    max_retries: int = Field(default=3, ge=0)
    verify_certs: bool = True
    refresh_interval: str = "1s"
    number_of_shards: int = Field(default=1, ge=1)
    number_of_replicas: int = Field(default=1, ge=0)

    @field_validator("url")
    @classmethod
    def _ensure_url(cls, value: str) -> str:
        if not value.strip():
            raise ValueError("Elasticsearch URL cannot be empty")
        return value

    @field_validator("timeout", mode="before")
    @classmethod
    def _parse_timeout(cls, value: Any) -> float:
        return parse_duration(value)


class DatabaseConfig(BaseModel):
    type: str = "sqlite"
    host: str = "localhost"
    port: int = 5432
    username: str = ""
    password: SecretStr = SecretStr("")
    database: str = ""
    ssl_mode: str = "disable"
    max_open_conns: int = Field(default=10, ge=1)
    max_idle_conns: int = Field(default=5, ge=0)
    conn_max_life: float = 3600.0
    auto_migrate: bool = False
    log_level: str = "error"

    @model_validator(mode="before")
    @classmethod
    def _default_sqlite_path(cls, data: Any) -> Any:
        # Partial sections (one env var, a short YAML block) still get a usable SQLite file.
        if isinstance(data, dict) and "database" not in data:
            if str(data.get("type", "sqlite")).strip().lower() == "sqlite":
                data = {**data, "database": DEFAULT_SQLITE_PATH}
        return data

    @field_validator("type")
    @classmethod
    def _normalize_type(cls, value: str) -> str:
        value = value.strip().lower()
        if not value:
            raise ValueError("database type cannot be empty")
        if value not in _SUPPORTED_DATABASE_TYPES:
            raise ValueError(f"unsupported database type: {value}")
        return value

    @field_validator("conn_max_life", mode="before")
    @classmethod
    def _parse_conn_max_life(cls, value: Any) -> float:
        return parse_duration(value)

    @model_validator(mode="after")
    def _validate_connection(self) -> "DatabaseConfig":
        if self.is_sqlite:
            if not self.database:
                raise ValueError("database file path cannot be empty for SQLite")
            return self
        if not self.host:
            raise ValueError("database host cannot be empty")
        if not 0 < self.port <= 65535:
            raise ValueError("database port must be between 1 and 65535")
        if not self.database:
            raise ValueError("database name cannot be empty")
        return self

    @property
    def is_sqlite(self) -> bool:
        return self.type == "sqlite"

    def url(self) -> URL:
        """Render the async SQLAlchemy URL for the configured database."""
        if self.is_sqlite:
            return URL.create("sqlite+aiosqlite", database=self.database)
        if self.type == "mysql":
            return URL.create(
                "mysql+aiomysql",
                username=self.username or None,
                password=self.password.get_secret_value() or None,
                host=self.host,
                port=self.port,
                database=self.database,
                query={"charset": "utf8mb4"},
            )
        query = {"ssl": self.ssl_mode} if self.ssl_mode else {}
        return URL.create(
            "postgresql+asyncpg",
            username=self.username or None,
            password=self.password.get_secret_value() or None,
            host=self.host,
            port=self.port,
            database=self.database,
            query=query,
        )


class AppConfig(BaseSettings):
    backend: StorageBackend = StorageBackend.DATABASE
    server: ServerConfig = Field(default_factory=ServerConfig)
    elastic: ElasticConfig = Field(default_factory=ElasticConfig)
    database: DatabaseConfig = Field(default_factory=DatabaseConfig)

    model_config = SettingsConfigDict(
        env_prefix="INTELLIINDEX_",
        env_nested_delimiter="__",
        extra="ignore",
    )


def find_config_file(search_dir: Path | None = None) -> Path | None:
    """Return the first known config file under search_dir (default: cwd)."""
    base = search_dir or Path.cwd()
    for candidate in CONFIG_FILE_CANDIDATES:
        path = base / candidate
        if path.is_file():
            return path
    return None


def load_config_file(path: Path) -> dict[str, Any]:
    with open(path, encoding="utf-8") as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ConfigError(f"configuration file {path} must contain a mapping")
    return data


def load_config(config_path: str | Path | None = None, env_file: str | Path | None = ".env") -> AppConfig:
    """Load application configuration.

    Args:
        config_path: Explicit YAML file. When None, well-known file names in the
            current directory are tried before falling back to the environment.
        env_file: ``.env`` file whose variables are loaded into the process
            environment. A missing file is not an error.

    Raises:
        ConfigError: If a file cannot be read or the result fails validation.
    """
    if env_file is not None and Path(env_file).is_file():
        load_dotenv(env_file)
        logger.info("env_file_loaded", path=str(env_file))

    path = Path(config_path) if config_path is not None else find_config_file()
    data: dict[str, Any] = {}
    if path is not None:
        try:
            data = load_config_file(path)
        except (OSError, yaml.YAMLError) as e:
            raise ConfigError(f"failed to read configuration file {path}: {e}") from e
        logger.info("config_file_loaded", path=str(path))
    else:
        logger.info("config_from_environment")

    try:
        return AppConfig(**data)
    except ValidationError as e:
        raise ConfigError(f"invalid configuration: {e}") from e
