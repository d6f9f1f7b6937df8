"""Parameterized statement builders for shadow table reads and writes."""

from __future__ import annotations

from typing import Any, List, Sequence, Tuple

from psycopg2 import sql

from .schema import SchemaError, TableSchema, validate_columns

Statement = Tuple[sql.Composed, List[Any]]


def _key_values(table: TableSchema, primary_key: Sequence[Any]) -> List[Any]:
    key = list(primary_key)
    if len(key) != len(table.primary_key):
        raise SchemaError(
            f"primary key for {table.name!r} expects {len(table.primary_key)} "
            f"value(s) {list(table.primary_key)}, got {len(key)}"
        )
    return key


def _key_predicate(
    table: TableSchema, primary_key: Sequence[Any]
) -> Tuple[sql.Composed, List[Any]]:
    key = _key_values(table, primary_key)
    predicate = sql.SQL(" AND ").join(
        sql.SQL("{} = %s").format(sql.Identifier(name)) for name in table.primary_key
    )
    return predicate, key


def build_shadow_read_statement(
    shadow_table: str,
    columns: Sequence[str],
    primary_key: Sequence[Any],
    schema: TableSchema,
    *,
    lock: bool = True,
) -> Statement:
    """Build ``SELECT columns FROM shadow_table WHERE key [FOR UPDATE]``.

    ``schema`` describes the shadow table and supplies the key column names
    and the schema qualifier used for quoting.
    """
    if not columns:
        raise SchemaError("at least one column must be read")
    validate_columns(schema, columns)
    predicate, params = _key_predicate(schema, primary_key)
    statement = sql.SQL("SELECT {columns} FROM {table} WHERE {predicate}").format(
        columns=sql.SQL(", ").join(sql.Identifier(name) for name in columns),
        table=schema.identifier(shadow_table),
        predicate=predicate,
    )
    if lock:
        statement = sql.SQL("{} FOR UPDATE").format(statement)
    return statement, params


def _value_columns(schema: TableSchema, values: Sequence[Tuple[str, Any]]) -> List[str]:
    if not values:
        raise SchemaError("at least one shadow column must be written")
    columns = [name for name, _ in values]
    validate_columns(schema, columns)
    return columns


def build_shadow_insert_statement(
    shadow_table: str,
    schema: TableSchema,
    primary_key: Sequence[Any],
    values: Sequence[Tuple[str, Any]],
) -> Statement:
    """Build an insert of the first shadow row for ``primary_key``.

    A row that already exists is left untouched and the statement affects no
    rows, so the caller can tell it lost a race with a concurrent insert.
    """
    key = _key_values(schema, primary_key)
    all_columns = list(schema.primary_key) + _value_columns(schema, values)
    statement = sql.SQL(
        "INSERT INTO {table} ({columns}) VALUES ({placeholders}) "
        "ON CONFLICT ({key}) DO NOTHING"
    ).format(
        table=schema.identifier(shadow_table),
        columns=sql.SQL(", ").join(sql.Identifier(name) for name in all_columns),
        placeholders=sql.SQL(", ").join(sql.Placeholder() for _ in all_columns),
        key=sql.SQL(", ").join(sql.Identifier(name) for name in schema.primary_key),
    )
    return statement, key + [value for _, value in values]


def build_shadow_update_statement(
    shadow_table: str,
    schema: TableSchema,
    primary_key: Sequence[Any],
    values: Sequence[Tuple[str, Any]],
    expected: Sequence[Tuple[str, Any]],
) -> Statement:
    """Build an overwrite of the shadow row that only matches ``expected``.

    The row is changed only while it still holds the ``expected`` column
    values; a concurrent writer that got there first leaves zero rows matched.
    """
    value_columns = _value_columns(schema, values)
    expected_columns = _value_columns(schema, expected)
    predicate, key = _key_predicate(schema, primary_key)
    statement = sql.SQL(
        "UPDATE {table} SET {assignments} WHERE {predicate} AND {guard}"
    ).format(
        table=schema.identifier(shadow_table),
        assignments=sql.SQL(", ").join(
            sql.SQL("{} = %s").format(sql.Identifier(name)) for name in value_columns
        ),
        predicate=predicate,
        guard=sql.SQL(" AND ").join(
            sql.SQL("{} = %s").format(sql.Identifier(name))
            for name in expected_columns
        ),
    )
    params = [value for _, value in values] + key + [value for _, value in expected]
    return statement, params


__all__ = [
    "Statement",
    "build_shadow_insert_statement",
    "build_shadow_read_statement",
    "build_shadow_update_statement",
]
