import pytest
from psycopg2 import sql

from cdc_ordering.db.schema import (
    Column,
    SchemaError,
    TableSchema,
    create_table_statement,
    load_table_schema,
    shadow_table_schema,
)
from cdc_ordering.db.statements import (
    build_shadow_insert_statement,
    build_shadow_read_statement,
    build_shadow_update_statement,
)
from cdc_ordering.sequencing.codec import MySqlSequenceCodec, PostgresSequenceCodec


def _render(node) -> str:
    if isinstance(node, sql.Composed):
        return "".join(_render(part) for part in node.seq)
    if isinstance(node, sql.SQL):
        return node.string
    if isinstance(node, sql.Identifier):
        return ".".join(f'"{part}"' for part in node.strings)
    if isinstance(node, sql.Placeholder):
        return "%s"
    raise TypeError(f"unexpected composable {node!r}")


@pytest.fixture
def orders() -> TableSchema:
    return TableSchema(
        name="orders",
        columns=(
            Column("tenant_id", "integer", True),
            Column("order_id", "bigint", True),
            Column("status", "text"),
        ),
        primary_key=("tenant_id", "order_id"),
        schema_name="public",
    )


@pytest.fixture
def shadow_orders(orders) -> TableSchema:
    return shadow_table_schema(orders, MySqlSequenceCodec.shadow_columns)


@pytest.mark.unit
def test_shadow_schema_keeps_key_and_adds_sequence_columns(orders, shadow_orders):
    assert shadow_orders.name == "shadow_orders"
    assert shadow_orders.schema_name == "public"
    assert shadow_orders.primary_key == ("tenant_id", "order_id")
    assert shadow_orders.column_names == [
        "tenant_id",
        "order_id",
        "timestamp",
        "log_file",
        "log_position",
    ]
    assert all(column.not_null for column in shadow_orders.columns)

    postgres_shadow = shadow_table_schema(
        orders, PostgresSequenceCodec.shadow_columns, prefix="seq_"
    )
    assert postgres_shadow.name == "seq_orders"
    assert postgres_shadow.column_names[-2:] == ["timestamp", "lsn"]


@pytest.mark.unit
def test_shadow_schema_rejects_key_collision():
    table = TableSchema(
        name="events",
        columns=(Column("timestamp", "bigint", True),),
        primary_key=("timestamp",),
    )
    with pytest.raises(SchemaError):
        shadow_table_schema(table, MySqlSequenceCodec.shadow_columns)


@pytest.mark.unit
def test_table_schema_requires_primary_key():
    with pytest.raises(SchemaError):
        TableSchema(name="t", columns=(Column("a", "int"),), primary_key=())
    with pytest.raises(SchemaError):
        TableSchema(name="t", columns=(Column("a", "int"),), primary_key=("b",))


@pytest.mark.unit
def test_locking_read_statement(shadow_orders):
    statement, params = build_shadow_read_statement(
        "shadow_orders",
        ["timestamp", "log_file", "log_position"],
        (7, 42),
        shadow_orders,
    )
    assert _render(statement) == (
        'SELECT "timestamp", "log_file", "log_position" '
        'FROM "public"."shadow_orders" '
        'WHERE "tenant_id" = %s AND "order_id" = %s FOR UPDATE'
    )
    assert params == [7, 42]


@pytest.mark.unit
def test_plain_read_statement_has_no_lock_hint(shadow_orders):
    statement, _ = build_shadow_read_statement(
        "shadow_orders", ["timestamp"], (7, 42), shadow_orders, lock=False
    )
    assert not _render(statement).endswith("FOR UPDATE")


@pytest.mark.unit
def test_read_statement_validates_key_and_columns(shadow_orders):
    with pytest.raises(SchemaError):
        build_shadow_read_statement("shadow_orders", ["timestamp"], (7,), shadow_orders)
    with pytest.raises(SchemaError):
        build_shadow_read_statement("shadow_orders", ["lsn"], (7, 42), shadow_orders)
    with pytest.raises(SchemaError):
        build_shadow_read_statement("shadow_orders", [], (7, 42), shadow_orders)


@pytest.mark.unit
def test_insert_statement_leaves_existing_row_untouched(shadow_orders):
    statement, params = build_shadow_insert_statement(
        "shadow_orders",
        shadow_orders,
        (7, 42),
        [("timestamp", 100), ("log_file", "mysql-bin.01"), ("log_position", 50)],
    )
    assert _render(statement) == (
        'INSERT INTO "public"."shadow_orders" '
        '("tenant_id", "order_id", "timestamp", "log_file", "log_position") '
        "VALUES (%s, %s, %s, %s, %s) "
        'ON CONFLICT ("tenant_id", "order_id") DO NOTHING'
    )
    assert params == [7, 42, 100, "mysql-bin.01", 50]


@pytest.mark.unit
def test_update_statement_only_matches_expected_sequence(shadow_orders):
    statement, params = build_shadow_update_statement(
        "shadow_orders",
        shadow_orders,
        (7, 42),
        [("timestamp", 100), ("log_file", "mysql-bin.01"), ("log_position", 50)],
        [("timestamp", 100), ("log_file", ""), ("log_position", -1)],
    )
    assert _render(statement) == (
        'UPDATE "public"."shadow_orders" SET '
        '"timestamp" = %s, "log_file" = %s, "log_position" = %s '
        'WHERE "tenant_id" = %s AND "order_id" = %s AND '
        '"timestamp" = %s AND "log_file" = %s AND "log_position" = %s'
    )
    assert params == [100, "mysql-bin.01", 50, 7, 42, 100, "", -1]


@pytest.mark.unit
def test_write_statements_validate_key_and_columns(shadow_orders):
    values = [("timestamp", 1)]
    with pytest.raises(SchemaError):
        build_shadow_insert_statement("shadow_orders", shadow_orders, (7,), values)
    with pytest.raises(SchemaError):
        build_shadow_insert_statement("shadow_orders", shadow_orders, (7, 42), [])
    with pytest.raises(SchemaError):
        build_shadow_update_statement(
            "shadow_orders", shadow_orders, (7, 42), values, [("lsn", "0/1")]
        )


@pytest.mark.unit
def test_create_table_statement(shadow_orders):
    assert _render(create_table_statement(shadow_orders)) == (
        'CREATE TABLE IF NOT EXISTS "public"."shadow_orders" ('
        '"tenant_id" integer NOT NULL, '
        '"order_id" bigint NOT NULL, '
        '"timestamp" BIGINT NOT NULL, '
        '"log_file" TEXT NOT NULL, '
        '"log_position" BIGINT NOT NULL, '
        'PRIMARY KEY ("tenant_id", "order_id"))'
    )


class _FakeResult:
    def __init__(self, rows):
        self._rows = rows

    def fetchall(self):
        return list(self._rows)


class _FakeConnection:
    def __init__(self, responses):
        self._responses = list(responses)
        self.executed = []

    def execute(self, query, params=None):
        self.executed.append(params)
        response = self._responses.pop(0)
        if isinstance(response, Exception):
            raise response
        return _FakeResult(response)


@pytest.mark.unit
def test_load_table_schema_from_catalog_rows():
    conn = _FakeConnection(
        [
            [
                {"column_name": "order_id", "data_type": "bigint", "not_null": True},
                {"column_name": "status", "data_type": "text", "not_null": False},
            ],
            [{"column_name": "order_id"}],
        ]
    )
    table = load_table_schema(conn, "orders", "sales")
    assert table.primary_key == ("order_id",)
    assert table.column("STATUS") == Column("status", "text", False)
    assert table.schema_name == "sales"
    assert conn.executed == [("sales", "orders"), ("sales", "orders")]


@pytest.mark.unit
def test_load_table_schema_wraps_driver_errors():
    from cdc_ordering.db import OperationalError

    conn = _FakeConnection([OperationalError("relation does not exist")])
    with pytest.raises(SchemaError) as excinfo:
        load_table_schema(conn, "missing")
    assert "missing" in str(excinfo.value)


@pytest.mark.unit
def test_load_table_schema_without_primary_key_is_rejected():
    conn = _FakeConnection(
        [[{"column_name": "a", "data_type": "int", "not_null": False}], []]
    )
    with pytest.raises(SchemaError):
        load_table_schema(conn, "heap")
