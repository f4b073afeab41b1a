"""
errors.py - Domain-specific exceptions for docguard.

All exceptions inherit from DocGuardError for unified handling.
Each exception type represents a distinct failure mode.
"""

from typing import Any


class DocGuardError(Exception):
    """Base exception for all docguard errors."""

    def __init__(self, message: str, context: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def __str__(self) -> str:
        if self.context:
            context_str = ", ".join(f"{k}={v!r}" for k, v in self.context.items())
            return f"{self.message} [{context_str}]"
        return self.message


class ValidationError(DocGuardError):
    """
    Raised when input validation fails.

    This includes records rejected by a record schema, existing data
    rejected by a collection schema during rebuild, and duplicate values
    on unique fields. ``details`` carries the underlying schema failure
    when there is one.
    """

    def __init__(
        self,
        message: str,
        field: str | None = None,
        value: Any = None,
        details: Any = None,
    ) -> None:
        context = {}
        if field is not None:
            context["field"] = field
        if value is not None:
            context["value"] = repr(value)[:100]
        super().__init__(message, context=context)
        self.field = field
        self.value = value
        self.details = details


class ConfigurationError(ValidationError):
    """
    Raised when an initializer is constructed with malformed input.

    Always raised before the database is touched.
    """


class UniqueConstraintError(ValidationError):
    """
    Raised by the collection engine when a write would duplicate a
    value on a unique field.
    """


class NotFoundError(DocGuardError):
    """
    Raised when a storage ID does not resolve to a live record.

    Deliberately not a ValidationError: the input had the right shape,
    the target is missing.
    """

    def __init__(
        self,
        message: str,
        collection: str | None = None,
        storage_id: Any = None,
    ) -> None:
        context = {}
        if collection is not None:
            context["collection"] = collection
        if storage_id is not None:
            context["storage_id"] = storage_id
        super().__init__(message, context=context)
        self.collection = collection
        self.storage_id = storage_id


class DatabaseError(DocGuardError):
    """
    Raised when a database or collection engine operation fails.

    This covers collection name collisions, lookups on fields without
    a unique index, and snapshot file read/write failures.
    """

    def __init__(
        self, message: str, operation: str | None = None, path: str | None = None
    ) -> None:
        context = {}
        if operation is not None:
            context["operation"] = operation
        if path is not None:
            context["path"] = path
        super().__init__(message, context=context)
        self.operation = operation
        self.path = path
