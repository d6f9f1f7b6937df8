"""Command line interface for shadow table provisioning."""

from __future__ import annotations

import argparse
import logging
import sys
from typing import Optional

from ..config import load_settings
from ..constants import SUPPORTED_SOURCE_TYPES
from ..db import connect, connect_from_settings
from . import create_shadow_table, plan_shadow_table


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="CDC shadow table provisioning")
    subparsers = parser.add_subparsers(dest="command", required=True)

    for name, help_text in (
        ("ddl", "Print the shadow table DDL for a target table"),
        ("create", "Create the shadow table for a target table"),
    ):
        sub = subparsers.add_parser(name, help=help_text)
        sub.add_argument("--table", required=True, help="Target table name")
        sub.add_argument(
            "--schema", default=None, help="Target schema (defaults to PGSCHEMA)"
        )
        sub.add_argument(
            "--source-type",
            choices=SUPPORTED_SOURCE_TYPES,
            default=None,
            help="Source engine (defaults to CDC_SOURCE_TYPE)",
        )
        sub.add_argument(
            "--prefix", default=None, help="Shadow table prefix (defaults to SHADOW_TABLE_PREFIX)"
        )
        sub.add_argument(
            "--conninfo", help="psycopg connection string", default=None
        )
        if name == "create":
            sub.add_argument(
                "--dry-run",
                action="store_true",
                help="Print the DDL that would run without executing it",
            )

    return parser


def main(argv: Optional[list[str]] = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    settings = load_settings()
    if not logging.getLogger().handlers:
        logging.basicConfig(
            level=getattr(logging, settings.log_level, logging.INFO),
            format="%(asctime)s %(levelname)s %(name)s - %(message)s",
        )

    options = {
        "schema_name": args.schema or settings.db_schema,
        "source_type": args.source_type or settings.source_type,
        "prefix": args.prefix or settings.shadow_table_prefix,
    }
    conn = connect(args.conninfo) if args.conninfo else connect_from_settings(settings)
    try:
        if args.command == "ddl":
            plan = plan_shadow_table(conn, args.table, **options)
            print(f"{plan.ddl};")
            return 0

        if args.command == "create":
            plan = create_shadow_table(
                conn, args.table, dry_run=args.dry_run, **options
            )
            if args.dry_run:
                print(f"DRY-RUN would execute: {plan.ddl};")
            else:
                print(f"Created shadow table {plan.shadow.name}")
            return 0
    finally:
        conn.close()

    parser.error("Unknown command")
    return 1


if __name__ == "__main__":
    sys.exit(main())
