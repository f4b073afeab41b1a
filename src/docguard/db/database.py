"""
database.py - Database container and whole-file persistence.

A Database owns a set of named collections and persists all of them
to one snapshot file. Saving is atomic: the snapshot is written to a
temporary file which then replaces the target.

The coroutine helpers run the blocking file work in a worker thread
and resolve to the database itself.
"""

import asyncio
import logging
import os
from typing import Any, Iterable

from docguard.config import LOGGER_DB, SNAPSHOT_TEMP_SUFFIX
from docguard.db.codec import pack_snapshot, unpack_snapshot
from docguard.db.collection import Collection
from docguard.errors import DatabaseError
from docguard.logs import CollectionLogger

logger = logging.getLogger(LOGGER_DB)
events = CollectionLogger(LOGGER_DB)


class Database:
    """
    Named collections plus load/save/delete of the backing file.

    An in-memory-only database (``persistent=False``) can still load a
    snapshot, but save() and delete() do nothing.
    """

    def __init__(self, filename: str, persistent: bool = True):
        self.filename = filename
        self.persistent = persistent
        self._collections: dict[str, Collection] = {}

    def __repr__(self) -> str:
        return f"Database(filename={self.filename!r}, collections={self.list_collections()!r})"

    @property
    def collections(self) -> list[Collection]:
        return list(self._collections.values())

    def list_collections(self) -> list[str]:
        return list(self._collections)

    def get_collection(self, name: str) -> Collection | None:
        return self._collections.get(name)

    def add_collection(
        self, name: str, unique: Iterable[str] = (), indices: Iterable[str] = ()
    ) -> Collection:
        """
        Create an empty collection.

        Raises:
            DatabaseError: A collection with that name already exists
        """
        if name in self._collections:
            raise DatabaseError(
                f"Collection {name!r} already exists",
                operation="add_collection",
            )
        collection = Collection(name, unique=unique, indices=indices)
        self._collections[name] = collection
        logger.debug(f"Added collection {name} (unique={list(unique)})")
        return collection

    def attach_collection(self, collection: Collection) -> Collection:
        """Register an existing Collection object under its own name."""
        if collection.name in self._collections:
            raise DatabaseError(
                f"Collection {collection.name!r} already exists",
                operation="attach_collection",
            )
        self._collections[collection.name] = collection
        return collection

    def remove_collection(self, name: str) -> Collection | None:
        """Detach a collection. Returns it, or None if there was none."""
        removed = self._collections.pop(name, None)
        if removed is not None:
            logger.debug(f"Removed collection {name}")
        return removed

    def clear_database(self) -> None:
        """Remove all collections."""
        for name in self.list_collections():
            self.remove_collection(name)

    def clear_all_data(self) -> None:
        """Remove all records of all collections, keeping the collections."""
        for collection in self.collections:
            collection.clear()

    # -------------------------------------------------------------------------
    # Persistence
    # -------------------------------------------------------------------------

    def to_snapshot(self) -> dict[str, Any]:
        return {
            "filename": os.path.basename(self.filename),
            "collections": [c.to_dict() for c in self.collections],
        }

    def load(self) -> "Database":
        """
        Replace all collections with the content of the backing file.

        A missing file leaves the database as it is.

        Raises:
            DatabaseError: File unreadable or not a valid snapshot
        """
        if not os.path.exists(self.filename):
            logger.debug(f"No snapshot at {self.filename}, nothing to load")
            return self

        try:
            with open(self.filename, "rb") as f:
                data = f.read()
        except OSError as e:
            raise DatabaseError(
                f"Failed to read database file: {e}",
                operation="load",
                path=self.filename,
            ) from e

        snapshot = unpack_snapshot(data, path=self.filename)
        collections = {}
        for payload in snapshot.get("collections", []):
            collection = Collection.from_dict(payload)
            collections[collection.name] = collection

        self._collections = collections
        events.database_loaded(self.filename, len(collections))
        return self

    def save(self) -> "Database":
        """
        Write all collections to the backing file atomically.

        Raises:
            DatabaseError: Snapshot cannot be encoded or written
        """
        if not self.persistent:
            return self

        data = pack_snapshot(self.to_snapshot())
        temp_path = self.filename + SNAPSHOT_TEMP_SUFFIX
        try:
            with open(temp_path, "wb") as f:
                f.write(data)
                f.flush()
                os.fsync(f.fileno())
            os.replace(temp_path, self.filename)
        except OSError as e:
            if os.path.exists(temp_path):
                os.remove(temp_path)
            raise DatabaseError(
                f"Failed to write database file: {e}",
                operation="save",
                path=self.filename,
            ) from e

        events.database_saved(self.filename, len(self._collections), len(data))
        return self

    def delete(self) -> "Database":
        """
        Delete the backing file. Collections in memory are kept.

        Raises:
            DatabaseError: File exists but cannot be removed
        """
        if not self.persistent:
            return self
        try:
            if os.path.exists(self.filename):
                os.remove(self.filename)
        except OSError as e:
            raise DatabaseError(
                f"Failed to delete database file: {e}",
                operation="delete",
                path=self.filename,
            ) from e
        return self


async def load_database(db: Database) -> Database:
    """Coroutine wrapper for Database.load()."""
    return await asyncio.to_thread(db.load)


async def save_database(db: Database) -> Database:
    """Coroutine wrapper for Database.save()."""
    return await asyncio.to_thread(db.save)


async def delete_database(db: Database) -> Database:
    """Coroutine wrapper for Database.delete()."""
    return await asyncio.to_thread(db.delete)


def create_in_memory_db(filename: str = "memory.db") -> Database:
    """
    Create a database whose save() and delete() never touch disk.

    Args:
        filename: Snapshot to load from, if load() is called
    """
    return Database(filename, persistent=False)


def create_persisting_db(filename: str, create_path: bool = True) -> Database:
    """
    Create a database persisted at ``filename``.

    Args:
        filename: Snapshot file path, resolved to an absolute path
        create_path: Create missing parent directories
    """
    path = os.path.abspath(filename)
    directory = os.path.dirname(path)
    if create_path and not os.path.exists(directory):
        os.makedirs(directory, exist_ok=True)
    return Database(path, persistent=True)
