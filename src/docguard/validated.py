"""
validated.py - Validated mutation surface over a live collection.

ValidatedCollection wraps a raw engine collection together with a
record schema. Inserts, replaces and patches go through the schema and
the collection's unique constraints before they reach the engine.
Unique field names are read from the collection on every call, never
cached.
"""

import copy
import logging
from typing import Any

from docguard.config import ID_FIELD, LOGGER_VALIDATED
from docguard.db.collection import Collection
from docguard.errors import NotFoundError, ValidationError
from docguard.introspection import indexed_field_names, unique_field_names
from docguard.records import defaults_deep, pick_storage_fields, strip_storage_fields
from docguard.schema import STORAGE_ID, AnySchema, Validator, describe_error

logger = logging.getLogger(LOGGER_VALIDATED)


class ValidatedCollection:
    """
    A collection plus the record schema it is validated against.

    The raw engine object stays reachable as ``collection`` and the
    common engine calls are forwarded, so callers that do not need
    validation can use the wrapper directly.
    """

    def __init__(self, collection: Collection, record_schema: Validator | None = None) -> None:
        self.collection = collection
        self.record_schema = record_schema if record_schema is not None else AnySchema()

    def __repr__(self) -> str:
        return f"ValidatedCollection({self.collection!r}, record_schema={self.record_schema!r})"

    def __len__(self) -> int:
        return self.collection.count()

    # -------------------------------------------------------------------------
    # Engine passthrough
    # -------------------------------------------------------------------------

    @property
    def name(self) -> str:
        return self.collection.name

    @property
    def data(self) -> list[dict[str, Any]]:
        return self.collection.data

    @property
    def unique_field_names(self) -> list[str]:
        return unique_field_names(self.collection)

    @property
    def indexed_field_names(self) -> list[str]:
        return indexed_field_names(self.collection)

    def count(self, query: dict[str, Any] | None = None) -> int:
        return self.collection.count(query)

    def get(self, storage_id: Any) -> dict[str, Any] | None:
        return self.collection.get(storage_id)

    def by(self, field_name: str, value: Any) -> dict[str, Any] | None:
        return self.collection.by(field_name, value)

    def find(self, query: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        return self.collection.find(query)

    def insert(self, records: Any) -> Any:
        return self.collection.insert(records)

    def update(self, record: dict[str, Any]) -> dict[str, Any]:
        return self.collection.update(record)

    def remove(self, record: Any) -> None:
        self.collection.remove(record)

    def clear(self) -> None:
        self.collection.clear()

    def ensure_index(self, field_name: str) -> None:
        self.collection.ensure_index(field_name)

    # -------------------------------------------------------------------------
    # Lookup and removal
    # -------------------------------------------------------------------------

    def get_by_id(self, storage_id: Any) -> dict[str, Any]:
        """
        Find the record with the given storage ID.

        Raises:
            ValidationError: ID is not a positive integer
            NotFoundError: No live record has that ID
        """
        if storage_id is None or STORAGE_ID.validate(storage_id).error is not None:
            raise ValidationError(
                "Storage ID must be a positive integer",
                field=ID_FIELD,
                value=storage_id,
            )
        record = self.collection.get(storage_id)
        if record is None:
            raise NotFoundError(
                "No record with given storage ID",
                collection=self.name,
                storage_id=storage_id,
            )
        return record

    def remove_by_field(self, field_name: str, value: Any) -> None:
        """
        Remove the record whose unique field equals ``value``.

        Does nothing when no record matches. The field must carry a
        unique constraint; otherwise the engine lookup raises
        DatabaseError.
        """
        record = self.collection.by(field_name, value)
        if record is not None:
            self.collection.remove(record)

    def remove_by_id(self, storage_id: Any) -> dict[str, Any]:
        """Remove the record with the given storage ID and return a copy of it."""
        record = self.get_by_id(storage_id)
        removed = copy.deepcopy(record)
        self.collection.remove(record)
        return removed

    def upsert(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Update the record if its storage ID is live, insert it otherwise.

        No validation happens here. A storage ID that does not resolve
        is dropped and the record is inserted under a fresh one.
        """
        storage_id = record.get(ID_FIELD)
        if storage_id is not None and self.collection.get(storage_id) is not None:
            return self.collection.update(record)
        if storage_id is not None:
            logger.debug(f"Storage ID {storage_id!r} not live in {self.name}, inserting as new")
        return self.collection.insert(strip_storage_fields(record))

    # -------------------------------------------------------------------------
    # Validation
    # -------------------------------------------------------------------------

    def validate_object_schema(self, record: Any) -> Any:
        """
        Validate a record with the collection's record schema.

        Returns:
            The validated value, schema defaults applied

        Raises:
            ValidationError: Record does not match the schema
        """
        result = self.record_schema.validate(record)
        if result.error is not None:
            raise ValidationError(
                f"Record does not match {self.name} schema",
                details=describe_error(result.error),
            )
        return result.value

    def validate_unique_fields(
        self, record: dict[str, Any], existing: dict[str, Any] | None = None
    ) -> bool:
        """
        Check that a record does not duplicate a unique field value.

        Args:
            record: Record about to be written
            existing: Record that ``record`` will replace, if any; values
                equal to its own never count as duplicates

        Returns:
            True

        Raises:
            ValidationError: Another live record holds one of the values
        """
        for field_name in unique_field_names(self.collection):
            value = record.get(field_name)
            if value is None:
                continue
            same_as_existing = (
                existing is not None
                and existing.get(field_name) is not None
                and existing.get(field_name) == value
            )
            if not same_as_existing and self.collection.by(field_name, value) is not None:
                raise ValidationError(
                    f"Duplicate key for field {field_name}: {value!r}",
                    field=field_name,
                    value=value,
                )
        return True

    # -------------------------------------------------------------------------
    # Validated mutation
    # -------------------------------------------------------------------------

    def validate_and_insert(self, record: dict[str, Any]) -> dict[str, Any]:
        """Validate schema, then uniqueness, then insert the validated value."""
        validated = self.validate_object_schema(record)
        self.validate_unique_fields(validated)
        return self.collection.insert(validated)

    def validate_and_replace(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Replace an existing record wholesale.

        Fields not re-supplied are dropped. ``$id`` and ``meta`` always
        come from the existing record.

        Raises:
            ValidationError: Bad storage ID, schema mismatch or duplicate
            NotFoundError: Storage ID does not resolve
        """
        existing = self.get_by_id(record.get(ID_FIELD))
        validated = self.validate_object_schema(strip_storage_fields(record))
        self.validate_unique_fields(validated, existing)
        replaced = {**validated, **pick_storage_fields(existing)}
        return self.collection.update(replaced)

    def validate_and_patch(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Merge a partial record into an existing one.

        Supplied fields win, omitted fields keep their current values,
        nested dicts are merged key by key. ``$id`` and ``meta`` always
        come from the existing record. Uniqueness is checked on the
        patch before merging; the schema on the merged result.

        Raises:
            ValidationError: Bad storage ID, schema mismatch or duplicate
            NotFoundError: Storage ID does not resolve
        """
        existing = self.get_by_id(record.get(ID_FIELD))
        self.validate_unique_fields(record, existing)
        storage = pick_storage_fields(existing)
        patched = defaults_deep(storage, record, existing)
        validated = self.validate_object_schema(strip_storage_fields(patched))
        return self.collection.update({**validated, **storage})
