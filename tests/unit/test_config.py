"""Unit tests for configuration loading."""

import os
from pathlib import Path

import pytest
from pydantic import ValidationError

from intelliindex.config import (
    AppConfig,
    DatabaseConfig,
    ElasticConfig,
    ServerConfig,
    find_config_file,
    load_config,
    parse_duration,
)
from intelliindex.errors import ConfigError
from intelliindex.models.enums import StorageBackend


@pytest.fixture(autouse=True)
def _isolated_environment(monkeypatch, tmp_path: Path):
    """Run each test from an empty directory with no INTELLIINDEX_ variables."""
    for key in list(os.environ):
        if key.startswith("INTELLIINDEX_"):
            monkeypatch.delenv(key)
    monkeypatch.chdir(tmp_path)
    yield
    # load_dotenv writes straight into os.environ
    for key in list(os.environ):
        if key.startswith("INTELLIINDEX_"):
            del os.environ[key]


class TestParseDuration:
    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (5, 5.0),
            (2.5, 2.5),
            ("30", 30.0),
            ("500ms", 0.5),
            ("30s", 30.0),
            ("1m", 60.0),
            ("1h", 3600.0),
            ("1d", 86400.0),
            (" 1.5s ", 1.5),
        ],
    )
    def test_valid_durations(self, value, expected: float) -> None:
        assert parse_duration(value) == expected

    @pytest.mark.parametrize("value", ["", "soon", "1x", "-1s", -1, True, None])
    def test_invalid_durations(self, value) -> None:
        with pytest.raises(ValueError):
            parse_duration(value)


class TestDefaults:
    def test_server_defaults(self) -> None:
        server = ServerConfig()

        assert server.port == 8080
        assert server.shutdown_timeout == 5.0

    def test_elastic_defaults(self) -> None:
        elastic = ElasticConfig()

        assert elastic.index_prefix == "search-engine"
        assert elastic.timeout == 30.0
        assert elastic.max_retries == 3
        assert elastic.refresh_interval == "1s"

    def test_app_defaults_use_sqlite(self) -> None:
        config = AppConfig()

        assert config.backend == StorageBackend.DATABASE
        assert config.database.is_sqlite

    def test_database_defaults_to_sqlite_file(self) -> None:
        database = DatabaseConfig()

        assert database.is_sqlite
        assert database.database == "intelliindex.db"


class TestDatabaseConfig:
    """Validation rules and URL rendering."""

    def test_postgres_url(self) -> None:
        cfg = DatabaseConfig(
            type="postgres", host="db", port=5433, username="app", password="p@ss", database="search"
        )

        url = cfg.url()

        assert url.drivername == "postgresql+asyncpg"
        assert url.host == "db"
        assert url.port == 5433
        assert url.password == "p@ss"
        assert url.database == "search"

    def test_mysql_url(self) -> None:
        url = DatabaseConfig(type="MySQL", database="search", port=3306).url()

        assert url.drivername == "mysql+aiomysql"
        assert url.query["charset"] == "utf8mb4"

    def test_sqlite_requires_path(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseConfig(type="sqlite", database="")

    def test_server_database_requires_name(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseConfig(type="postgres", database="")

    def test_server_database_requires_host(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseConfig(type="postgres", host="", database="search")

    def test_port_range(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseConfig(type="postgres", database="search", port=70000)

    def test_unsupported_type(self) -> None:
        with pytest.raises(ValidationError):
            DatabaseConfig(type="oracle", database="search")

    def test_conn_max_life_accepts_duration(self) -> None:
        assert DatabaseConfig(type="sqlite", database="x.db", conn_max_life="30m").conn_max_life == 1800.0


class TestLoadConfig:
    def test_loads_yaml_file(self, tmp_path: Path) -> None:
        path = tmp_path / "custom.yaml"
        path.write_text(
            "backend: elasticsearch\n"
            "elastic:\n"
            "  url: http://es:9200\n"
            "  timeout: 10s\n"
            "database:\n"
            "  type: sqlite\n"
            "  database: data.db\n"
        )

        config = load_config(path, env_file=None)

        assert config.backend == StorageBackend.ELASTICSEARCH
        assert config.elastic.url == "http://es:9200"
        assert config.elastic.timeout == 10.0
        assert config.database.database == "data.db"

    def test_finds_default_file(self, tmp_path: Path) -> None:
        (tmp_path / "config.yaml").write_text("server:\n  port: 9000\n")

        assert find_config_file() == tmp_path / "config.yaml"
        assert load_config(env_file=None).server.port == 9000

    def test_falls_back_to_environment(self, monkeypatch) -> None:
        monkeypatch.setenv("INTELLIINDEX_SERVER__PORT", "9100")
        monkeypatch.setenv("INTELLIINDEX_BACKEND", "elasticsearch")

        config = load_config(env_file=None)

        assert config.server.port == 9100
        assert config.backend == StorageBackend.ELASTICSEARCH

    def test_single_database_variable_keeps_sqlite_default(self, monkeypatch) -> None:
        monkeypatch.setenv("INTELLIINDEX_DATABASE__AUTO_MIGRATE", "true")

        config = load_config(env_file=None)

        assert config.database.auto_migrate is True
        assert config.database.is_sqlite
        assert config.database.database == "intelliindex.db"

    def test_partial_database_section_keeps_sqlite_default(self, tmp_path: Path) -> None:
        path = tmp_path / "partial.yaml"
        path.write_text("database:\n  log_level: info\n")

        config = load_config(path, env_file=None)

        assert config.database.log_level == "info"
        assert config.database.database == "intelliindex.db"

    def test_partial_server_database_section_still_needs_a_name(self, tmp_path: Path) -> None:
        path = tmp_path / "postgres.yaml"
        path.write_text("database:\n  type: postgres\n")

        with pytest.raises(ConfigError):
            load_config(path, env_file=None)

    def test_env_file_is_loaded(self, tmp_path: Path) -> None:
        env_file = tmp_path / "test.env"
        env_file.write_text("INTELLIINDEX_ELASTIC__INDEX_PREFIX=from-dotenv\n")

        config = load_config(env_file=env_file)

        assert config.elastic.index_prefix == "from-dotenv"

    def test_missing_env_file_is_ignored(self, tmp_path: Path) -> None:
        config = load_config(env_file=tmp_path / "absent.env")

        assert config.server.port == 8080

    def test_invalid_values_raise_config_error(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.yaml"
        path.write_text("server:\n  port: 99999\n")

        with pytest.raises(ConfigError):
            load_config(path, env_file=None)

    def test_non_mapping_file_raises_config_error(self, tmp_path: Path) -> None:
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ConfigError):
            load_config(path, env_file=None)

    def test_missing_explicit_file_raises_config_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError):
            load_config(tmp_path / "nope.yaml", env_file=None)
