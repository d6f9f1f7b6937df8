"""Runtime configuration helpers for the change event sequencer."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass
from typing import Optional

from dotenv import load_dotenv

from .constants import (
    DEFAULT_SHADOW_TABLE_PREFIX,
    ISOLATION_LEVELS,
    MYSQL_SOURCE_TYPE,
    SUPPORTED_SOURCE_TYPES,
)

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Settings:
    """Immutable container for sequencer configuration."""

    db_mode: str
    db_host: str
    db_port: int
    db_name: str
    db_user: str
    db_password: str
    db_schema: str
    source_type: str = MYSQL_SOURCE_TYPE
    shadow_table_prefix: str = DEFAULT_SHADOW_TABLE_PREFIX
    use_locking_read: bool = True
    isolation_level: Optional[str] = None
    log_level: str = "INFO"


def _coerce_db_mode(value: Optional[str]) -> str:
    """Translate DB_MODE env var to a supported value."""
    if value is None:
        return "mock"
    normalized = value.strip().lower()
    if normalized in {"mock", "local"}:
        return normalized
    return "mock"


def _coerce_source_type(value: Optional[str]) -> str:
    if value is None:
        return MYSQL_SOURCE_TYPE
    normalized = value.strip().lower()
    if normalized in SUPPORTED_SOURCE_TYPES:
        return normalized
    logger.warning(
        "unsupported CDC_SOURCE_TYPE %r; falling back to %s", value, MYSQL_SOURCE_TYPE
    )
    return MYSQL_SOURCE_TYPE


def _coerce_read_mode(value: Optional[str]) -> bool:
    """Return True when shadow reads should use the FOR UPDATE statement."""
    if value is None:
        return True
    normalized = value.strip().lower()
    if normalized == "row":
        return False
    if normalized != "sql":
        logger.warning("unknown SHADOW_READ_MODE %r; using locking sql reads", value)
    return True


def _coerce_isolation_level(value: Optional[str]) -> Optional[str]:
    if not value or not value.strip():
        return None
    normalized = " ".join(value.replace("_", " ").split()).upper()
    if normalized in ISOLATION_LEVELS:
        return normalized
    logger.warning("unsupported SHADOW_ISOLATION_LEVEL %r; using server default", value)
    return None


def load_settings() -> Settings:
    """Load configuration from the environment (and `.env`)."""
    load_dotenv()
    db_mode = _coerce_db_mode(os.getenv("DB_MODE"))
    db_host = os.getenv("PGHOST", "localhost")
    db_port = int(os.getenv("PGPORT", "5432"))
    db_name = os.getenv("PGDATABASE", "cdc_target")
    db_user = os.getenv("PGUSER", "postgres")
    db_password = os.getenv("PGPASSWORD", "")
    db_schema = os.getenv("PGSCHEMA", "public")
    source_type = _coerce_source_type(os.getenv("CDC_SOURCE_TYPE"))
    shadow_table_prefix = os.getenv("SHADOW_TABLE_PREFIX", DEFAULT_SHADOW_TABLE_PREFIX)
    use_locking_read = _coerce_read_mode(os.getenv("SHADOW_READ_MODE"))
    isolation_level = _coerce_isolation_level(os.getenv("SHADOW_ISOLATION_LEVEL"))
    log_level = os.getenv("LOG_LEVEL", "INFO").strip().upper() or "INFO"

    return Settings(
        db_mode=db_mode,
        db_host=db_host,
        db_port=db_port,
        db_name=db_name,
        db_user=db_user,
        db_password=db_password,
        db_schema=db_schema,
        source_type=source_type,
        shadow_table_prefix=shadow_table_prefix or DEFAULT_SHADOW_TABLE_PREFIX,
        use_locking_read=use_locking_read,
        isolation_level=isolation_level,
        log_level=log_level,
    )
