import pytest

from cdc_ordering.config import load_settings


@pytest.fixture(autouse=True)
def _patch_dotenv(monkeypatch):
    monkeypatch.setattr(
        "cdc_ordering.config.load_dotenv", lambda *_args, **_kwargs: True
    )


def _seed_minimal_env(monkeypatch, **overrides):
    monkeypatch.setenv("PGHOST", "localhost")
    monkeypatch.setenv("PGPORT", "5432")
    monkeypatch.setenv("PGDATABASE", "cdc_target")
    monkeypatch.setenv("PGUSER", "postgres")
    monkeypatch.setenv("PGPASSWORD", "pass")
    monkeypatch.setenv("PGSCHEMA", "public")
    for name in (
        "DB_MODE",
        "CDC_SOURCE_TYPE",
        "SHADOW_TABLE_PREFIX",
        "SHADOW_READ_MODE",
        "SHADOW_ISOLATION_LEVEL",
        "LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    for name, value in overrides.items():
        monkeypatch.setenv(name, value)


@pytest.mark.unit
def test_defaults(monkeypatch):
    _seed_minimal_env(monkeypatch)
    settings = load_settings()
    assert settings.db_mode == "mock"
    assert settings.source_type == "mysql"
    assert settings.shadow_table_prefix == "shadow_"
    assert settings.use_locking_read is True
    assert settings.isolation_level is None
    assert settings.log_level == "INFO"


@pytest.mark.unit
def test_db_settings_loaded(monkeypatch):
    _seed_minimal_env(monkeypatch, DB_MODE="LOCAL")
    settings = load_settings()
    assert settings.db_mode == "local"
    assert settings.db_host == "localhost"
    assert settings.db_port == 5432
    assert settings.db_name == "cdc_target"
    assert settings.db_user == "postgres"
    assert settings.db_password == "pass"
    assert settings.db_schema == "public"


@pytest.mark.unit
def test_row_read_mode_disables_locking_read(monkeypatch):
    _seed_minimal_env(monkeypatch, SHADOW_READ_MODE="Row")
    assert load_settings().use_locking_read is False


@pytest.mark.unit
def test_unknown_values_fall_back(monkeypatch, caplog):
    _seed_minimal_env(
        monkeypatch,
        DB_MODE="staging",
        CDC_SOURCE_TYPE="oracle",
        SHADOW_READ_MODE="fast",
        SHADOW_ISOLATION_LEVEL="chaos",
    )
    settings = load_settings()
    assert settings.db_mode == "mock"
    assert settings.source_type == "mysql"
    assert settings.use_locking_read is True
    assert settings.isolation_level is None
    assert "CDC_SOURCE_TYPE" in caplog.text


@pytest.mark.unit
def test_overrides(monkeypatch):
    _seed_minimal_env(
        monkeypatch,
        CDC_SOURCE_TYPE="PostgreSQL",
        SHADOW_TABLE_PREFIX="seq_",
        SHADOW_ISOLATION_LEVEL="repeatable_read",
        LOG_LEVEL="debug",
    )
    settings = load_settings()
    assert settings.source_type == "postgresql"
    assert settings.shadow_table_prefix == "seq_"
    assert settings.isolation_level == "REPEATABLE READ"
    assert settings.log_level == "DEBUG"
