"""
config.py - Configuration constants for docguard.

All configuration is immutable and defined at module level.
No mutable global state is permitted.
"""

from typing import Final

# Storage-owned record fields
# The engine assigns and mutates these; application data must not
ID_FIELD: Final[str] = "$id"
META_FIELD: Final[str] = "meta"
STORAGE_FIELDS: Final[tuple[str, ...]] = (ID_FIELD, META_FIELD)

# Application-facing ID field name used by id_to_storage_id / storage_id_to_id
APP_ID_FIELD: Final[str] = "id"

# Snapshot file format version
# Increment this when the snapshot layout changes
SNAPSHOT_FORMAT_VERSION: Final[int] = 1

# Suffix of the temporary file written before an atomic replace
SNAPSHOT_TEMP_SUFFIX: Final[str] = ".tmp"

# Environment variable the CLI reads the database path from
ENV_DB_PATH: Final[str] = "DOCGUARD_DB_PATH"

# Logger names
LOGGER_DB: Final[str] = "docguard.db"
LOGGER_INITIALIZER: Final[str] = "docguard.initializer"
LOGGER_VALIDATED: Final[str] = "docguard.validated"
