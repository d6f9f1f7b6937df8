from types import SimpleNamespace

import pytest

from cdc_ordering.config import Settings
from cdc_ordering.shadow import __main__ as cli


class _FakeConnection:
    def __init__(self):
        self.closed = False

    def close(self):
        self.closed = True


def _settings(**overrides):
    values = dict(
        db_mode="mock",
        db_host="localhost",
        db_port=5432,
        db_name="cdc_target",
        db_user="postgres",
        db_password="",
        db_schema="sales",
        source_type="postgresql",
        shadow_table_prefix="seq_",
    )
    values.update(overrides)
    return Settings(**values)


@pytest.fixture
def wired(monkeypatch):
    conn = _FakeConnection()
    calls = []
    plan = SimpleNamespace(
        ddl='CREATE TABLE IF NOT EXISTS "sales"."seq_orders" (...)',
        shadow=SimpleNamespace(name="seq_orders"),
    )

    def _plan(connection, table, **options):
        calls.append(("plan", connection, table, options))
        return plan

    def _create(connection, table, *, dry_run=False, **options):
        calls.append(("create", connection, table, dict(options, dry_run=dry_run)))
        return plan

    monkeypatch.setattr(cli, "load_settings", lambda: _settings())
    monkeypatch.setattr(cli, "connect_from_settings", lambda settings: conn)
    monkeypatch.setattr(cli, "connect", lambda conninfo: conn)
    monkeypatch.setattr(cli, "plan_shadow_table", _plan)
    monkeypatch.setattr(cli, "create_shadow_table", _create)
    return SimpleNamespace(conn=conn, calls=calls)


@pytest.mark.unit
def test_ddl_prints_statement_with_settings_defaults(wired, capsys):
    assert cli.main(["ddl", "--table", "orders"]) == 0
    out = capsys.readouterr().out
    assert out.strip() == 'CREATE TABLE IF NOT EXISTS "sales"."seq_orders" (...);'
    kind, connection, table, options = wired.calls[0]
    assert (kind, table) == ("plan", "orders")
    assert connection is wired.conn
    assert options == {
        "schema_name": "sales",
        "source_type": "postgresql",
        "prefix": "seq_",
    }
    assert wired.conn.closed


@pytest.mark.unit
def test_create_honours_cli_overrides(wired, capsys):
    exit_code = cli.main(
        [
            "create",
            "--table",
            "orders",
            "--schema",
            "public",
            "--source-type",
            "mysql",
            "--prefix",
            "shadow_",
            "--conninfo",
            "dbname=test",
        ]
    )
    assert exit_code == 0
    assert "Created shadow table seq_orders" in capsys.readouterr().out
    _, _, _, options = wired.calls[0]
    assert options == {
        "schema_name": "public",
        "source_type": "mysql",
        "prefix": "shadow_",
        "dry_run": False,
    }
    assert wired.conn.closed


@pytest.mark.unit
def test_create_dry_run_prints_ddl(wired, capsys):
    assert cli.main(["create", "--table", "orders", "--dry-run"]) == 0
    assert capsys.readouterr().out.startswith("DRY-RUN would execute: ")
    assert wired.calls[0][3]["dry_run"] is True


@pytest.mark.unit
def test_unknown_source_type_rejected(wired):
    with pytest.raises(SystemExit):
        cli.main(["ddl", "--table", "orders", "--source-type", "oracle"])
    assert wired.calls == []
