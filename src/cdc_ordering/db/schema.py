"""Table schema model, shadow table derivation and catalog introspection."""

from __future__ import annotations

from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterable, List, Optional, Sequence, Tuple

from psycopg2 import Error, sql

from ..constants import DEFAULT_SHADOW_TABLE_PREFIX

if TYPE_CHECKING:  # pragma: no cover - import-time helper only
    from . import Connection


class SchemaError(ValueError):
    """Raised when a table schema cannot be loaded or derived."""


def qualified_identifier(name: str, schema_name: Optional[str] = None) -> sql.Identifier:
    if schema_name:
        return sql.Identifier(schema_name, name)
    return sql.Identifier(name)


@dataclass(frozen=True)
class Column:
    name: str
    type: str
    not_null: bool = False


@dataclass(frozen=True)
class TableSchema:
    """Columns and primary key of one table in the target store."""

    name: str
    columns: Tuple[Column, ...]
    primary_key: Tuple[str, ...]
    schema_name: Optional[str] = None

    def __post_init__(self) -> None:
        if not self.primary_key:
            raise SchemaError(f"table {self.name!r} has no primary key")
        for key_column in self.primary_key:
            if self.column(key_column) is None:
                raise SchemaError(
                    f"primary key column {key_column!r} not found in table {self.name!r}"
                )

    @property
    def column_names(self) -> List[str]:
        return [column.name for column in self.columns]

    def column(self, name: str) -> Optional[Column]:
        lowered = name.lower()
        for column in self.columns:
            if column.name.lower() == lowered:
                return column
        return None

    def identifier(self, name: Optional[str] = None) -> sql.Identifier:
        """Quoted, schema-qualified identifier for this table (or a sibling)."""
        return qualified_identifier(name or self.name, self.schema_name)

    def primary_key_columns(self) -> Tuple[Column, ...]:
        return tuple(self.column(name) for name in self.primary_key)  # type: ignore[misc]


def shadow_table_name(table_name: str, prefix: str = DEFAULT_SHADOW_TABLE_PREFIX) -> str:
    return f"{prefix}{table_name}"


def shadow_table_schema(
    table: TableSchema,
    sequence_columns: Iterable[Tuple[str, str]],
    prefix: str = DEFAULT_SHADOW_TABLE_PREFIX,
) -> TableSchema:
    """Derive the shadow table for ``table``: its key plus the sequence columns."""
    key_columns = [
        Column(name=column.name, type=column.type, not_null=True)
        for column in table.primary_key_columns()
    ]
    extra: List[Column] = []
    for name, column_type in sequence_columns:
        if any(column.name.lower() == name.lower() for column in key_columns):
            raise SchemaError(
                f"primary key column {name!r} of table {table.name!r} collides "
                "with a shadow sequence column"
            )
        extra.append(Column(name=name, type=column_type, not_null=True))
    return TableSchema(
        name=shadow_table_name(table.name, prefix),
        columns=tuple(key_columns + extra),
        primary_key=tuple(column.name for column in key_columns),
        schema_name=table.schema_name,
    )


def create_table_statement(table: TableSchema) -> sql.Composed:
    definitions: List[sql.Composable] = []
    for column in table.columns:
        definition = sql.SQL("{} {}").format(
            sql.Identifier(column.name), sql.SQL(column.type)
        )
        if column.not_null:
            definition = sql.SQL("{} NOT NULL").format(definition)
        definitions.append(definition)
    definitions.append(
        sql.SQL("PRIMARY KEY ({})").format(
            sql.SQL(", ").join(sql.Identifier(name) for name in table.primary_key)
        )
    )
    return sql.SQL("CREATE TABLE IF NOT EXISTS {} ({})").format(
        table.identifier(), sql.SQL(", ").join(definitions)
    )


_COLUMNS_QUERY = """
    SELECT a.attname AS column_name,
           format_type(a.atttypid, a.atttypmod) AS data_type,
           a.attnotnull AS not_null
      FROM pg_catalog.pg_attribute a
     WHERE a.attrelid = (
           quote_ident(coalesce(%s, current_schema())) || '.' || quote_ident(%s)
       )::regclass
       AND a.attnum > 0
       AND NOT a.attisdropped
     ORDER BY a.attnum
"""

_PRIMARY_KEY_QUERY = """
    SELECT a.attname AS column_name
      FROM pg_catalog.pg_index i
      JOIN LATERAL unnest(i.indkey) WITH ORDINALITY AS k(attnum, ord) ON TRUE
      JOIN pg_catalog.pg_attribute a
        ON a.attrelid = i.indrelid
       AND a.attnum = k.attnum
     WHERE i.indrelid = (
           quote_ident(coalesce(%s, current_schema())) || '.' || quote_ident(%s)
       )::regclass
       AND i.indisprimary
     ORDER BY k.ord
"""


def load_table_schema(
    conn: "Connection", table_name: str, schema_name: Optional[str] = None
) -> TableSchema:
    """Introspect ``table_name`` from the PostgreSQL catalog."""
    params = (schema_name, table_name)
    display = f"{schema_name}.{table_name}" if schema_name else table_name
    try:
        column_rows = conn.execute(_COLUMNS_QUERY, params).fetchall()
        key_rows = conn.execute(_PRIMARY_KEY_QUERY, params).fetchall()
    except Error as exc:  # noqa: BLE001 - wrap driver errors
        raise SchemaError(f"unable to load schema for {display}: {exc}") from exc
    if not column_rows:
        raise SchemaError(f"table {display} has no columns")
    return TableSchema(
        name=table_name,
        columns=tuple(
            Column(
                name=row["column_name"],
                type=row["data_type"],
                not_null=bool(row["not_null"]),
            )
            for row in column_rows
        ),
        primary_key=tuple(row["column_name"] for row in key_rows),
        schema_name=schema_name,
    )


def validate_columns(table: TableSchema, columns: Sequence[str]) -> None:
    missing = [name for name in columns if table.column(name) is None]
    if missing:
        raise SchemaError(f"columns {missing} not found in table {table.name!r}")


__all__ = [
    "Column",
    "SchemaError",
    "TableSchema",
    "create_table_statement",
    "load_table_schema",
    "qualified_identifier",
    "shadow_table_name",
    "shadow_table_schema",
    "validate_columns",
]
