"""
docguard.db - Document collection engine and database container.
"""

from docguard.db.collection import BinaryIndex, Collection
from docguard.db.database import (
    Database,
    create_in_memory_db,
    create_persisting_db,
    delete_database,
    load_database,
    save_database,
)

__all__ = [
    "BinaryIndex",
    "Collection",
    "Database",
    "create_in_memory_db",
    "create_persisting_db",
    "delete_database",
    "load_database",
    "save_database",
]
