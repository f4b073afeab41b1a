"""
docguard - Validated document collections

A validation and consistency layer for in-memory document collections
persisted to a single file. Declared unique constraints and record
schemas are enforced on every validated write, and collections whose
persisted constraints have drifted are rebuilt on initialization.
"""

from docguard.db import (
    Collection,
    Database,
    create_in_memory_db,
    create_persisting_db,
    delete_database,
    load_database,
    save_database,
)
from docguard.errors import (
    DocGuardError,
    ConfigurationError,
    DatabaseError,
    NotFoundError,
    UniqueConstraintError,
    ValidationError,
)
from docguard.initializer import CollectionInitializer, LifecycleHooks
from docguard.introspection import (
    has_unique_field_names,
    indexed_field_names,
    unique_field_names,
)
from docguard.schema import (
    AnySchema,
    ListSchema,
    PydanticSchema,
    ValidationResult,
    Validator,
)
from docguard.validated import ValidatedCollection

__version__ = "0.1.0"
__all__ = [
    # Core
    "CollectionInitializer",
    "LifecycleHooks",
    "ValidatedCollection",
    # Introspection
    "has_unique_field_names",
    "indexed_field_names",
    "unique_field_names",
    # Schemas
    "AnySchema",
    "ListSchema",
    "PydanticSchema",
    "ValidationResult",
    "Validator",
    # Database
    "Collection",
    "Database",
    "create_in_memory_db",
    "create_persisting_db",
    "delete_database",
    "load_database",
    "save_database",
    # Errors
    "DocGuardError",
    "ConfigurationError",
    "DatabaseError",
    "NotFoundError",
    "UniqueConstraintError",
    "ValidationError",
]
