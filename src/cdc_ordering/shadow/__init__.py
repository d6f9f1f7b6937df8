"""Shadow table provisioning for tracked target tables."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Optional

from ..constants import DEFAULT_SHADOW_TABLE_PREFIX, MYSQL_SOURCE_TYPE
from ..db import Connection, Error
from ..db.schema import (
    SchemaError,
    TableSchema,
    create_table_statement,
    load_table_schema,
    shadow_table_schema,
)
from ..sequencing.codec import get_codec

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ShadowTablePlan:
    """Shadow table derived for one target table and its rendered DDL."""

    target: TableSchema
    shadow: TableSchema
    ddl: str


def plan_shadow_table(
    conn: Connection,
    table_name: str,
    *,
    schema_name: Optional[str] = None,
    source_type: str = MYSQL_SOURCE_TYPE,
    prefix: str = DEFAULT_SHADOW_TABLE_PREFIX,
) -> ShadowTablePlan:
    target = load_table_schema(conn, table_name, schema_name)
    codec = get_codec(source_type)
    shadow = shadow_table_schema(target, codec.shadow_columns, prefix)
    ddl = create_table_statement(shadow).as_string(conn)
    return ShadowTablePlan(target=target, shadow=shadow, ddl=ddl)


def create_shadow_table(
    conn: Connection,
    table_name: str,
    *,
    schema_name: Optional[str] = None,
    source_type: str = MYSQL_SOURCE_TYPE,
    prefix: str = DEFAULT_SHADOW_TABLE_PREFIX,
    dry_run: bool = False,
) -> ShadowTablePlan:
    """Create the shadow table for ``table_name`` if it does not exist yet."""
    plan = plan_shadow_table(
        conn,
        table_name,
        schema_name=schema_name,
        source_type=source_type,
        prefix=prefix,
    )
    if dry_run:
        return plan
    try:
        with conn.transaction() as scope:
            scope.execute(plan.ddl)
    except Error as exc:  # noqa: BLE001 - wrap driver errors
        raise SchemaError(
            f"unable to create shadow table {plan.shadow.name}: {exc}"
        ) from exc
    logger.info(
        "shadow table %s ready for %s (%s)",
        plan.shadow.name,
        plan.target.name,
        source_type,
    )
    return plan


__all__ = ["ShadowTablePlan", "create_shadow_table", "plan_shadow_table"]
