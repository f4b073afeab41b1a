"""
initializer.py - Collection initialization and rebuild.

A CollectionInitializer reconciles a persisted collection with the
unique constraints the application requires now:

- absent collection: create it
- constraints match: keep it
- constraints drifted: validate the existing data, then recreate the
  collection with the required constraints and replay the data

Existing data is validated before anything is destroyed, so a rejected
rebuild leaves the original collection untouched.
"""

import logging
import time
from dataclasses import dataclass
from typing import Any, Callable, Sequence

from docguard.config import LOGGER_INITIALIZER
from docguard.db.database import Database
from docguard.errors import ConfigurationError, ValidationError
from docguard.introspection import has_unique_field_names, unique_field_names
from docguard.logs import CollectionLogger
from docguard.records import strip_storage_fields
from docguard.schema import AnySchema, Validator, describe_error, find_duplicate
from docguard.validated import ValidatedCollection

logger = logging.getLogger(LOGGER_INITIALIZER)
events = CollectionLogger(LOGGER_INITIALIZER)

Hook = Callable[["CollectionInitializer"], None]


def _noop(stage: str) -> Hook:
    def hook(initializer: "CollectionInitializer") -> None:
        logger.debug(f"{stage} hook not set for {initializer.collection_name}")
    return hook


@dataclass(frozen=True)
class LifecycleHooks:
    """
    Callbacks run around create() and rebuild().

    Each is called with the initializer. Use them for database
    preparation, extra inspection or post-processing data.
    """
    pre_create: Hook = _noop("pre_create")
    post_create: Hook = _noop("post_create")
    pre_rebuild: Hook = _noop("pre_rebuild")
    post_rebuild: Hook = _noop("post_rebuild")


def validate_unique_field_names(names: Any) -> tuple[str, ...]:
    """
    Normalize unique field name input to a tuple.

    Accepts a single non-empty string or a list/tuple of distinct
    non-empty strings.

    Raises:
        ConfigurationError: Any other shape
    """
    if isinstance(names, str):
        names = [names]
    if not isinstance(names, (list, tuple)):
        raise ConfigurationError(
            "Invalid unique field names: expected a string or a list of strings",
            field="unique_field_names",
            value=names,
        )
    seen = set()
    for name in names:
        if not isinstance(name, str) or not name:
            raise ConfigurationError(
                "Invalid unique field name: expected a non-empty string",
                field="unique_field_names",
                value=name,
            )
        if name in seen:
            raise ConfigurationError(
                f"Duplicate unique field name {name!r}",
                field="unique_field_names",
                value=name,
            )
        seen.add(name)
    return tuple(names)


class CollectionInitializer:
    """
    Configuration for one named collection and the protocol to bring
    it in line with that configuration.

    Example:
        initializer = CollectionInitializer(
            db,
            "pages",
            unique_field_names=["slug"],
            collection_schema=ListSchema(PydanticSchema(Page), unique="slug"),
            record_schema=PydanticSchema(Page),
        )
        pages = initializer.initialize()
        pages.validate_and_insert({"slug": "home"})
    """

    def __init__(
        self,
        db: Database,
        collection_name: str,
        unique_field_names: str | Sequence[str] = (),
        collection_schema: Validator | None = None,
        record_schema: Validator | None = None,
        hooks: LifecycleHooks | None = None,
    ) -> None:
        self.unique_field_names = validate_unique_field_names(unique_field_names)
        if not isinstance(collection_name, str) or not collection_name:
            raise ConfigurationError(
                "Collection name must be a non-empty string",
                field="collection_name",
                value=collection_name,
            )
        for label, schema in (("collection_schema", collection_schema), ("record_schema", record_schema)):
            if schema is not None and not isinstance(schema, Validator):
                raise ConfigurationError(
                    f"{label} must have a validate(value) method",
                    field=label,
                    value=schema,
                )

        self.db = db
        self.collection_name = collection_name
        self.collection_schema = collection_schema if collection_schema is not None else AnySchema()
        self.record_schema = record_schema if record_schema is not None else AnySchema()
        self.hooks = hooks if hooks is not None else LifecycleHooks()

    def __repr__(self) -> str:
        return (
            f"CollectionInitializer(collection_name={self.collection_name!r}, "
            f"unique_field_names={list(self.unique_field_names)!r})"
        )

    def initialize(self) -> ValidatedCollection:
        """
        Make sure the collection exists with the required constraints.

        Returns:
            The live collection wrapped with validated operations

        Raises:
            ValidationError: Existing data cannot satisfy the constraints
        """
        if self.should_rebuild():
            self.rebuild()
        collection = self.db.get_collection(self.collection_name)
        return ValidatedCollection(collection, self.record_schema)

    def should_rebuild(self) -> bool:
        """True if the collection is missing or enforces other unique fields."""
        existing = self.db.get_collection(self.collection_name)
        if existing is None:
            return True
        if not has_unique_field_names(existing, self.unique_field_names):
            return True
        return not set(unique_field_names(existing)) <= set(self.unique_field_names)

    def create(self) -> None:
        """
        Create the collection with the required constraints.

        Assumes no collection of that name exists; the database raises
        DatabaseError otherwise.
        """
        self.hooks.pre_create(self)
        self.db.add_collection(self.collection_name, unique=self.unique_field_names)
        events.collection_created(self.collection_name, list(self.unique_field_names))
        self.hooks.post_create(self)

    def validate_existing(self) -> list[dict[str, Any]]:
        """
        Validate the existing collection's data for replay.

        Storage fields are stripped, the records are checked against the
        collection schema, then against the required unique fields.

        Returns:
            Validated records in their original order; empty if the
            collection does not exist

        Raises:
            ValidationError: Data rejected by the schema or duplicated
        """
        existing = self.db.get_collection(self.collection_name)
        if existing is None:
            return []

        records = [strip_storage_fields(record) for record in existing.data]
        result = self.collection_schema.validate(records)
        if result.error is not None:
            message = f"unable to rebuild {self.collection_name} collection: invalid existing data"
            events.rebuild_rejected(self.collection_name, str(result.error))
            raise ValidationError(message, details=describe_error(result.error))

        duplicate = find_duplicate(result.value, self.unique_field_names)
        if duplicate is not None:
            field, value = duplicate
            message = (
                f"unable to rebuild {self.collection_name} collection: "
                f"duplicate value for unique field {field}"
            )
            events.rebuild_rejected(self.collection_name, f"duplicate {field}={value!r}")
            raise ValidationError(message, field=field, value=value)

        return list(result.value)

    def rebuild(self) -> None:
        """
        Recreate the collection with the required constraints.

        Missing collection: same as create(). Otherwise the existing
        data is validated first, then the old collection is replaced
        by a new one holding the same records under fresh storage IDs.
        If the new collection cannot be built, the old one is put back.

        Raises:
            ValidationError: Existing data rejected; nothing was changed
        """
        self.hooks.pre_rebuild(self)
        existing = self.db.get_collection(self.collection_name)
        if existing is None:
            logger.debug(f"{self.collection_name} collection does not exist")
            self.create()
        else:
            started = time.monotonic()
            records = self.validate_existing()

            self.db.remove_collection(self.collection_name)
            try:
                self.create()
                self.db.get_collection(self.collection_name).insert(records)
            except Exception:
                logger.error(f"Rebuild of {self.collection_name} failed, restoring original collection")
                self.db.remove_collection(self.collection_name)
                self.db.attach_collection(existing)
                raise

            events.collection_rebuilt(
                self.collection_name,
                list(self.unique_field_names),
                len(records),
                (time.monotonic() - started) * 1000,
            )
        self.hooks.post_rebuild(self)
