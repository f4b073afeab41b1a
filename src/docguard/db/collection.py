"""
collection.py - In-memory document collection engine.

A Collection is an unordered set of dict records. On insert each record
is assigned a storage ID and engine metadata. Unique indices reject
duplicate non-null values; binary indices speed up equality lookups.

Records handed back by the engine are the stored objects themselves.
Inputs are deep-copied, so callers never alias engine state by
inserting or updating.
"""

import bisect
import copy
import logging
from typing import Any, Hashable, Iterable, Iterator

from docguard.config import ID_FIELD, LOGGER_DB, META_FIELD
from docguard.errors import DatabaseError, NotFoundError, UniqueConstraintError, ValidationError
from docguard.records import new_meta, touch_meta, value_key
from docguard.schema import STORED_RECORD, describe_error

logger = logging.getLogger(LOGGER_DB)

_MISSING = object()


def _sort_key(value: Any) -> tuple:
    # Total order across JSON types: null < bool < number < string < other
    if value is None or value is _MISSING:
        return (0, 0)
    if isinstance(value, bool):
        return (1, int(value))
    if isinstance(value, (int, float)):
        return (2, value)
    if isinstance(value, str):
        return (3, value)
    return (4, str(value_key(value)))


class BinaryIndex:
    """Sorted (value, storage ID) index over one field, rebuilt lazily."""

    def __init__(self, field: str) -> None:
        self.field = field
        self.dirty = True
        self._keys: list[tuple] = []
        self._ids: list[int] = []

    def rebuild(self, records: dict[int, dict[str, Any]]) -> None:
        pairs = sorted(
            ((_sort_key(r.get(self.field, _MISSING)), sid) for sid, r in records.items()),
            key=lambda pair: (pair[0], pair[1]),
        )
        self._keys = [key for key, _ in pairs]
        self._ids = [sid for _, sid in pairs]
        self.dirty = False

    def lookup(self, value: Any) -> list[int]:
        """Storage IDs whose field value sorts equal to ``value``."""
        key = _sort_key(value)
        lo = bisect.bisect_left(self._keys, key)
        hi = bisect.bisect_right(self._keys, key)
        return self._ids[lo:hi]


class Collection:
    """
    Named set of records with unique and binary indices.

    Storage IDs come from a monotonically increasing counter that is
    never rewound, so IDs are not reused within a collection.
    """

    def __init__(
        self, name: str, unique: Iterable[str] = (), indices: Iterable[str] = ()
    ) -> None:
        self.name = name
        self.unique_names: list[str] = list(unique)
        self.binary_indices: dict[str, BinaryIndex] = {}
        self.max_id = 0
        self._records: dict[int, dict[str, Any]] = {}
        self._unique: dict[str, dict[Hashable, int]] = {f: {} for f in self.unique_names}
        for field in indices:
            self.ensure_index(field)

    def __repr__(self) -> str:
        return f"Collection(name={self.name!r}, count={len(self._records)}, unique={self.unique_names!r})"

    def __len__(self) -> int:
        return len(self._records)

    def __iter__(self) -> Iterator[dict[str, Any]]:
        return iter(list(self._records.values()))

    @property
    def data(self) -> list[dict[str, Any]]:
        """Live records in insertion order."""
        return list(self._records.values())

    def count(self, query: dict[str, Any] | None = None) -> int:
        if not query:
            return len(self._records)
        return len(self.find(query))

    # -------------------------------------------------------------------------
    # Mutation
    # -------------------------------------------------------------------------

    def insert(self, records: dict[str, Any] | list[dict[str, Any]]) -> Any:
        """
        Insert one record or a list of records.

        A list is inserted all-or-nothing: every record is checked
        before any is stored.

        Returns:
            The stored record, or the list of stored records

        Raises:
            ValidationError: Record is not a dict or already has a storage ID
            UniqueConstraintError: Record duplicates a unique field value
        """
        if isinstance(records, (list, tuple)):
            batch = [self._prepare(r) for r in records]
            pending: dict[str, set] = {f: set() for f in self.unique_names}
            for record in batch:
                self._check_unique(record, pending=pending)
            return [self._add(record) for record in batch]

        record = self._prepare(records)
        self._check_unique(record)
        return self._add(record)

    def update(self, record: dict[str, Any]) -> dict[str, Any]:
        """
        Replace a stored record with a new version.

        The engine keeps ownership of ``meta``: the stored metadata
        object is carried over with its revision bumped, whatever the
        input supplied.

        Raises:
            NotFoundError: Storage ID does not resolve to a live record
            UniqueConstraintError: New version duplicates a unique value
        """
        storage_id = record.get(ID_FIELD) if isinstance(record, dict) else None
        current = self.get(storage_id)
        if current is None:
            raise NotFoundError(
                "Trying to update a record not in collection",
                collection=self.name,
                storage_id=storage_id,
            )

        updated = copy.deepcopy(record)
        self._check_unique(updated, exclude_id=storage_id)

        updated[META_FIELD] = touch_meta(current.get(META_FIELD))

        self._unindex(storage_id, current)
        self._records[storage_id] = updated
        self._index(storage_id, updated)
        return updated

    def remove(self, record: dict[str, Any] | int) -> None:
        """
        Remove a record, given the record or its storage ID.

        The removed object loses its storage fields so stale references
        no longer look live.

        Raises:
            NotFoundError: Record is not in the collection
        """
        storage_id = record.get(ID_FIELD) if isinstance(record, dict) else record
        current = self.get(storage_id)
        if current is None:
            raise NotFoundError(
                "Trying to remove a record not in collection",
                collection=self.name,
                storage_id=storage_id,
            )
        self._unindex(storage_id, current)
        del self._records[storage_id]
        current.pop(ID_FIELD, None)
        current.pop(META_FIELD, None)

    def clear(self) -> None:
        """Remove every record. The ID counter is kept."""
        self._records.clear()
        self._unique = {f: {} for f in self.unique_names}
        self._mark_dirty()

    # -------------------------------------------------------------------------
    # Lookup
    # -------------------------------------------------------------------------

    def get(self, storage_id: Any) -> dict[str, Any] | None:
        """Record with the given storage ID, None if absent or malformed."""
        if isinstance(storage_id, bool) or not isinstance(storage_id, int):
            return None
        return self._records.get(storage_id)

    def by(self, field: str, value: Any) -> dict[str, Any] | None:
        """
        Look up a record through a unique index.

        Raises:
            DatabaseError: Field has no unique index
        """
        index = self._unique.get(field)
        if index is None:
            raise DatabaseError(
                f"Field {field!r} has no unique index in collection {self.name!r}",
                operation="by",
            )
        if value is None:
            return None
        storage_id = index.get(value_key(value))
        return self._records.get(storage_id) if storage_id is not None else None

    def find(self, query: dict[str, Any] | None = None) -> list[dict[str, Any]]:
        """Records whose fields equal every key/value pair of ``query``."""
        if not query:
            return self.data

        candidates: Iterable[int] = self._records.keys()
        for field, value in query.items():
            index = self.binary_indices.get(field)
            if index is not None:
                if index.dirty:
                    index.rebuild(self._records)
                candidates = sorted(index.lookup(value))
                break

        matches = []
        for storage_id in candidates:
            record = self._records[storage_id]
            if all(record.get(k, _MISSING) == v for k, v in query.items()):
                matches.append(record)
        return matches

    def ensure_index(self, field: str) -> None:
        """Create (or refresh) a binary index on ``field``."""
        index = self.binary_indices.setdefault(field, BinaryIndex(field))
        index.rebuild(self._records)

    # -------------------------------------------------------------------------
    # Snapshot
    # -------------------------------------------------------------------------

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "unique": list(self.unique_names),
            "indices": list(self.binary_indices),
            "max_id": self.max_id,
            "data": copy.deepcopy(self.data),
        }

    @classmethod
    def from_dict(cls, payload: dict[str, Any]) -> "Collection":
        """
        Restore a collection from its snapshot form.

        Raises:
            DatabaseError: A persisted record is malformed or violates
                a unique constraint
        """
        try:
            name = payload["name"]
        except (KeyError, TypeError) as e:
            raise DatabaseError(f"Malformed collection snapshot: {e}", operation="load") from e

        collection = cls(name, unique=payload.get("unique") or (), indices=())
        for record in payload.get("data") or []:
            result = STORED_RECORD.validate(record)
            if result.error is not None:
                raise DatabaseError(
                    f"Malformed record in collection {name!r}: {describe_error(result.error)}",
                    operation="load",
                )
            storage_id = record[ID_FIELD]
            if storage_id in collection._records:
                raise DatabaseError(
                    f"Duplicate storage ID {storage_id} in collection {name!r}",
                    operation="load",
                )
            stored = copy.deepcopy(record)
            try:
                collection._check_unique(stored)
            except UniqueConstraintError as e:
                raise DatabaseError(
                    f"Persisted collection {name!r} violates its unique constraint: {e}",
                    operation="load",
                ) from e
            collection._records[storage_id] = stored
            collection._index(storage_id, stored)

        collection.max_id = max(
            [payload.get("max_id") or 0, *collection._records.keys()]
        )
        for field in payload.get("indices") or []:
            collection.ensure_index(field)
        return collection

    # -------------------------------------------------------------------------
    # Internals
    # -------------------------------------------------------------------------

    def _prepare(self, record: Any) -> dict[str, Any]:
        if not isinstance(record, dict):
            raise ValidationError(
                f"Record must be a dict, got {type(record).__name__}",
                value=record,
            )
        if record.get(ID_FIELD) is not None:
            raise ValidationError(
                "Record already carries a storage ID, use update()",
                field=ID_FIELD,
                value=record[ID_FIELD],
            )
        return {k: copy.deepcopy(v) for k, v in record.items() if k not in (ID_FIELD, META_FIELD)}

    def _add(self, record: dict[str, Any]) -> dict[str, Any]:
        self.max_id += 1
        record[ID_FIELD] = self.max_id
        record[META_FIELD] = new_meta()
        self._records[self.max_id] = record
        self._index(self.max_id, record)
        return record

    def _check_unique(
        self,
        record: dict[str, Any],
        exclude_id: int | None = None,
        pending: dict[str, set] | None = None,
    ) -> None:
        for field in self.unique_names:
            value = record.get(field)
            if value is None:
                continue
            key = value_key(value)
            holder = self._unique[field].get(key)
            if (holder is not None and holder != exclude_id) or (
                pending is not None and key in pending[field]
            ):
                raise UniqueConstraintError(
                    f"Duplicate key for field {field}: {value!r}",
                    field=field,
                    value=value,
                )
            if pending is not None:
                pending[field].add(key)

    def _index(self, storage_id: int, record: dict[str, Any]) -> None:
        for field in self.unique_names:
            value = record.get(field)
            if value is not None:
                self._unique[field][value_key(value)] = storage_id
        self._mark_dirty()

    def _unindex(self, storage_id: int, record: dict[str, Any]) -> None:
        for field in self.unique_names:
            value = record.get(field)
            if value is None:
                continue
            key = value_key(value)
            if self._unique[field].get(key) == storage_id:
                del self._unique[field][key]
        self._mark_dirty()

    def _mark_dirty(self) -> None:
        for index in self.binary_indices.values():
            index.dirty = True
