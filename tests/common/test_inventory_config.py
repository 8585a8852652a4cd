from __future__ import annotations

from pathlib import Path  # noqa: TC003

import pytest

from nventory.config import (
    ConfigurationError,
    MissingConfigurationError,
    get_database_config,
    get_ingest_config,
    get_storage_config,
    require_env_var,
    require_env_vars,
)
from nventory.config.storage import DEFAULT_DB_FILENAME


def test_require_env_vars_reports_every_missing_name(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("PRESENT_VAR", "value")
    monkeypatch.delenv("MISSING_A", raising=False)
    monkeypatch.setenv("MISSING_B", "   ")

    with pytest.raises(MissingConfigurationError) as exc:
        require_env_vars(["PRESENT_VAR", "MISSING_A", "MISSING_B"])

    assert "MISSING_A, MISSING_B" in str(exc.value)
    assert require_env_var("PRESENT_VAR") == "value"


def test_storage_prefers_explicit_data_dir(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    custom = tmp_path / "custom-data"
    monkeypatch.setenv("NVENTORY_DATA_DIR", str(custom))

    assert get_storage_config().resolve_data_dir() == custom.resolve()


def test_database_uri_env_override(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URI", "postgresql+psycopg://inventory@db/inventory")

    assert get_database_config().uri == "postgresql+psycopg://inventory@db/inventory"


def test_database_uri_defaults_to_sqlite_in_data_dir(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path
) -> None:
    monkeypatch.delenv("DATABASE_URI", raising=False)
    monkeypatch.setenv("NVENTORY_DATA_DIR", str(tmp_path / "data-dir"))

    uri = get_database_config().uri

    expected_path = (tmp_path / "data-dir" / DEFAULT_DB_FILENAME).resolve()
    assert uri == f"sqlite+pysqlite:///{expected_path}"
    assert expected_path.parent.exists()


def test_ingest_config_defaults(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.delenv("NVENTORY_MAX_RESOLUTION_ATTEMPTS", raising=False)
    monkeypatch.delenv("NVENTORY_LOCK_TIMEOUT_SECONDS", raising=False)

    config = get_ingest_config()

    assert config.max_resolution_attempts == 3
    assert config.lock_timeout_seconds == 30.0


def test_ingest_config_reads_environment(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("NVENTORY_MAX_RESOLUTION_ATTEMPTS", "5")
    monkeypatch.setenv("NVENTORY_LOCK_TIMEOUT_SECONDS", "2.5")

    config = get_ingest_config()

    assert config.max_resolution_attempts == 5
    assert config.lock_timeout_seconds == 2.5


@pytest.mark.parametrize(
    ("name", "value"),
    [
        ("NVENTORY_MAX_RESOLUTION_ATTEMPTS", "0"),
        ("NVENTORY_MAX_RESOLUTION_ATTEMPTS", "three"),
        ("NVENTORY_LOCK_TIMEOUT_SECONDS", "-1"),
    ],
)
def test_ingest_config_rejects_bad_values(
    monkeypatch: pytest.MonkeyPatch, name: str, value: str
) -> None:
    monkeypatch.setenv(name, value)

    with pytest.raises(ConfigurationError):
        get_ingest_config()
