"""
records.py - Storage-owned record fields.

Every persisted record carries two fields owned by the collection
engine: the storage ID and the metadata map. These helpers add, strip
and protect them when records cross the validation boundary.
"""

import copy
import json
import time
from typing import Any, Hashable

from docguard.config import APP_ID_FIELD, ID_FIELD, STORAGE_FIELDS


def now_ms() -> int:
    """Current wall clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def strip_storage_fields(record: dict[str, Any]) -> dict[str, Any]:
    """
    Return a shallow copy of a record without storage-owned fields.

    Args:
        record: Record, possibly carrying ``$id`` and ``meta``

    Returns:
        New dict without ``$id`` and ``meta``
    """
    return {k: v for k, v in record.items() if k not in STORAGE_FIELDS}


def pick_storage_fields(record: dict[str, Any]) -> dict[str, Any]:
    """
    Return a deep copy of only the storage-owned fields of a record.

    Fields absent from the record are absent from the result.
    """
    return {k: copy.deepcopy(record[k]) for k in STORAGE_FIELDS if k in record}


def id_to_storage_id(record: dict[str, Any], id_field: str = APP_ID_FIELD) -> dict[str, Any]:
    """Rename an application-facing ID field to the storage ID field."""
    result = {k: v for k, v in record.items() if k != id_field}
    if id_field in record:
        result[ID_FIELD] = record[id_field]
    return result


def storage_id_to_id(record: dict[str, Any], id_field: str = APP_ID_FIELD) -> dict[str, Any]:
    """Rename the storage ID field to an application-facing ID field."""
    result = {k: v for k, v in record.items() if k != ID_FIELD}
    if ID_FIELD in record:
        result[id_field] = record[ID_FIELD]
    return result


def defaults_deep(*sources: dict[str, Any]) -> dict[str, Any]:
    """
    Merge dicts recursively, earlier sources taking precedence.

    A key is taken from the first source that has it. When that value
    and a later source's value are both dicts, they are merged the same
    way. Values are deep-copied so the result shares nothing with the
    inputs.

    Example:
        >>> defaults_deep({"a": {"x": 1}}, {"a": {"x": 2, "y": 3}, "b": 4})
        {'a': {'x': 1, 'y': 3}, 'b': 4}
    """
    result: dict[str, Any] = {}
    for source in sources:
        for key, value in source.items():
            if key not in result:
                result[key] = copy.deepcopy(value)
            elif isinstance(result[key], dict) and isinstance(value, dict):
                result[key] = defaults_deep(result[key], value)
    return result


def new_meta(timestamp: int | None = None) -> dict[str, Any]:
    """Metadata for a freshly inserted record."""
    return {
        "revision": 0,
        "created": now_ms() if timestamp is None else timestamp,
        "version": 0,
    }


def touch_meta(meta: dict[str, Any] | None, timestamp: int | None = None) -> dict[str, Any]:
    """
    Metadata after an update: revision bumped, ``updated`` stamped.

    The given dict is changed in place and returned, so every live
    reference to a record's metadata sees the bump.
    """
    touched = meta if meta is not None else new_meta(timestamp)
    touched["revision"] = touched.get("revision", 0) + 1
    touched["updated"] = now_ms() if timestamp is None else timestamp
    return touched


def value_key(value: Any) -> Hashable:
    """
    Hashable identity of a field value for uniqueness checks.

    Numbers compare by value, so ``1`` and ``1.0`` collide, while
    booleans stay apart from them. Other scalars compare by type and
    value. Dicts and lists compare by their canonical JSON form.
    """
    if isinstance(value, (dict, list, tuple)):
        return ("json", json.dumps(value, sort_keys=True, default=str))
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return ("number", value)
    return (type(value).__name__, value)

