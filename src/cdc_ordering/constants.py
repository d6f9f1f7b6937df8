"""Source-type tags, change-event metadata keys and shadow-table column layouts."""

from __future__ import annotations

from typing import Dict, Tuple

MYSQL_SOURCE_TYPE = "mysql"
POSTGRES_SOURCE_TYPE = "postgresql"
SUPPORTED_SOURCE_TYPES = (MYSQL_SOURCE_TYPE, POSTGRES_SOURCE_TYPE)

# Change event metadata keys (Datastream naming).
EVENT_SOURCE_TYPE_KEY = "_metadata_source_type"
EVENT_TIMESTAMP_KEY = "_metadata_timestamp"
MYSQL_LOGFILE_KEY = "_metadata_log_file"
MYSQL_LOGPOSITION_KEY = "_metadata_log_position"
POSTGRES_LSN_KEY = "_metadata_lsn"

# Shadow table column names.
SHADOW_TIMESTAMP_COLUMN = "timestamp"
SHADOW_LOGFILE_COLUMN = "log_file"
SHADOW_LOGPOSITION_COLUMN = "log_position"
SHADOW_LSN_COLUMN = "lsn"

DEFAULT_SHADOW_TABLE_PREFIX = "shadow_"

# Event key -> (shadow column, column type), in comparison order.
MYSQL_SORT_ORDER: Dict[str, Tuple[str, str]] = {
    EVENT_TIMESTAMP_KEY: (SHADOW_TIMESTAMP_COLUMN, "BIGINT"),
    MYSQL_LOGFILE_KEY: (SHADOW_LOGFILE_COLUMN, "TEXT"),
    MYSQL_LOGPOSITION_KEY: (SHADOW_LOGPOSITION_COLUMN, "BIGINT"),
}

POSTGRES_SORT_ORDER: Dict[str, Tuple[str, str]] = {
    EVENT_TIMESTAMP_KEY: (SHADOW_TIMESTAMP_COLUMN, "BIGINT"),
    POSTGRES_LSN_KEY: (SHADOW_LSN_COLUMN, "TEXT"),
}

# Sentinels for dump/snapshot events; they sort below every streamed position.
MYSQL_DEFAULT_LOGFILE = ""
MYSQL_DEFAULT_LOGPOSITION = -1
POSTGRES_DEFAULT_LSN = ""

ISOLATION_LEVELS = ("READ COMMITTED", "REPEATABLE READ", "SERIALIZABLE")
