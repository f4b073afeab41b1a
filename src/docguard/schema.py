"""
schema.py - Schema validator contract and pydantic adapters.

docguard treats schemas as opaque: anything with a
``validate(value) -> ValidationResult`` method will do. This module
defines that contract and ships adapters built on pydantic v2.
"""

from datetime import datetime
from typing import Annotated, Any, NamedTuple, Protocol, Sequence, runtime_checkable

import pydantic
from pydantic import BaseModel, ConfigDict, Field, StrictInt, TypeAdapter

from docguard.errors import ValidationError
from docguard.records import value_key


class ValidationResult(NamedTuple):
    """Outcome of a schema check: ``error`` is None on success."""
    error: Any
    value: Any


@runtime_checkable
class Validator(Protocol):
    """Anything that can validate a value."""

    def validate(self, value: Any) -> ValidationResult:
        ...


class AnySchema:
    """Accepts every value unchanged."""

    def validate(self, value: Any) -> ValidationResult:
        return ValidationResult(None, value)

    def __repr__(self) -> str:
        return "AnySchema()"


class PydanticSchema:
    """
    Validator backed by a pydantic ``TypeAdapter``.

    Works with models, dataclasses, TypedDicts and annotated types.
    Validated values are dumped in JSON mode so that records stay
    JSON compatible and schema defaults end up in the stored record.

    Example:
        class Page(BaseModel):
            model_config = ConfigDict(extra="allow")
            slug: str = Field(min_length=1)
            is_disabled: bool = False

        schema = PydanticSchema(Page)
        schema.validate({"slug": "a"}).value
        # {'slug': 'a', 'is_disabled': False}
    """

    def __init__(self, type_: Any, by_alias: bool = True) -> None:
        self.type_ = type_
        self._adapter = TypeAdapter(type_)
        self._by_alias = by_alias

    def validate(self, value: Any) -> ValidationResult:
        try:
            validated = self._adapter.validate_python(value)
        except pydantic.ValidationError as e:
            return ValidationResult(e, value)
        return ValidationResult(
            None, self._adapter.dump_python(validated, mode="json", by_alias=self._by_alias)
        )

    def __repr__(self) -> str:
        return f"PydanticSchema({self.type_!r})"


class ListSchema:
    """
    Collection-level validator: a sequence of items, each checked by
    ``items``, with no two items sharing a non-null value on any of the
    ``unique`` fields.
    """

    def __init__(self, items: Validator | None = None, unique: str | Sequence[str] = ()) -> None:
        self.items = items if items is not None else AnySchema()
        self.unique = (unique,) if isinstance(unique, str) else tuple(unique)

    def validate(self, value: Any) -> ValidationResult:
        if not isinstance(value, (list, tuple)):
            return ValidationResult(
                ValidationError(f"Expected a list, got {type(value).__name__}"), value
            )

        validated = []
        for position, item in enumerate(value):
            result = self.items.validate(item)
            if result.error is not None:
                return ValidationResult(
                    ValidationError(
                        f"Item {position} is invalid",
                        field=f"[{position}]",
                        details=describe_error(result.error),
                    ),
                    value,
                )
            validated.append(result.value)

        duplicate = find_duplicate(validated, self.unique)
        if duplicate is not None:
            field, dup_value = duplicate
            return ValidationResult(
                ValidationError(
                    f"Duplicate value for unique field {field}",
                    field=field,
                    value=dup_value,
                ),
                value,
            )
        return ValidationResult(None, validated)

    def __repr__(self) -> str:
        return f"ListSchema(items={self.items!r}, unique={self.unique!r})"


def find_duplicate(
    records: Sequence[Any], field_names: Sequence[str]
) -> tuple[str, Any] | None:
    """
    First (field, value) pair held by more than one record.

    Null values and non-dict records are ignored.
    """
    for field in field_names:
        seen = set()
        for record in records:
            if not isinstance(record, dict):
                continue
            value = record.get(field)
            if value is None:
                continue
            key = value_key(value)
            if key in seen:
                return field, value
            seen.add(key)
    return None


def describe_error(error: Any) -> Any:
    """
    Structured details of a schema failure.

    pydantic errors become their ``errors()`` list, docguard errors
    their ``details`` (or message), anything else its string form.
    """
    if isinstance(error, pydantic.ValidationError):
        return error.errors(include_url=False)
    if isinstance(error, ValidationError):
        return error.details if error.details is not None else str(error)
    return str(error)


# =============================================================================
# Storage schemas
# =============================================================================

class StoredMeta(BaseModel):
    """Engine-owned metadata of a persisted record."""
    model_config = ConfigDict(extra="allow")

    revision: int | float
    created: int | float | datetime
    version: int | float
    updated: int | float | datetime | None = None


class StoredRecord(BaseModel):
    """A record as persisted by the engine: storage ID plus metadata."""
    model_config = ConfigDict(extra="allow", populate_by_name=True)

    storage_id: StrictInt = Field(alias="$id", ge=1)
    meta: StoredMeta


STORAGE_ID = PydanticSchema(Annotated[StrictInt, Field(ge=1)])
STORED_RECORD = PydanticSchema(StoredRecord)
