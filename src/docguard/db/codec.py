"""
codec.py - MessagePack snapshot serialization.

A database snapshot is a single MessagePack map holding every
collection, its constraint configuration and its records.

Keys are sorted before packing so identical databases produce
identical bytes.
"""

import msgpack
from typing import Any

from docguard.config import SNAPSHOT_FORMAT_VERSION
from docguard.errors import DatabaseError


def _canonical(value: Any) -> Any:
    if isinstance(value, dict):
        return {k: _canonical(value[k]) for k in sorted(value.keys())}
    if isinstance(value, (list, tuple)):
        return [_canonical(v) for v in value]
    return value


def pack_snapshot(snapshot: dict[str, Any]) -> bytes:
    """
    Serialize a database snapshot to canonical MessagePack.

    Args:
        snapshot: Dict with ``filename`` and ``collections`` keys

    Returns:
        MessagePack bytes, format version stamped in

    Raises:
        DatabaseError: If a record holds a value MessagePack cannot encode
    """
    payload = dict(snapshot)
    payload["format"] = SNAPSHOT_FORMAT_VERSION
    try:
        return msgpack.packb(_canonical(payload), use_bin_type=True)
    except (TypeError, ValueError) as e:
        raise DatabaseError(
            f"Cannot serialize snapshot to MessagePack: {e}",
            operation="pack_snapshot",
        ) from e


def unpack_snapshot(data: bytes, path: str | None = None) -> dict[str, Any]:
    """
    Deserialize a database snapshot.

    Args:
        data: MessagePack bytes
        path: Source file, for error context

    Returns:
        Snapshot dict

    Raises:
        DatabaseError: If data is not a snapshot this version can read
    """
    try:
        result = msgpack.unpackb(data, raw=False)
    except (msgpack.UnpackException, ValueError) as e:
        raise DatabaseError(
            f"Cannot deserialize snapshot: {e}",
            operation="unpack_snapshot",
            path=path,
        ) from e

    if not isinstance(result, dict):
        raise DatabaseError(
            f"Expected snapshot map, got {type(result).__name__}",
            operation="unpack_snapshot",
            path=path,
        )

    version = result.get("format")
    if version != SNAPSHOT_FORMAT_VERSION:
        raise DatabaseError(
            f"Unsupported snapshot format {version!r}, expected {SNAPSHOT_FORMAT_VERSION}",
            operation="unpack_snapshot",
            path=path,
        )

    if not isinstance(result.get("collections", []), list):
        raise DatabaseError(
            "Snapshot collections must be a list",
            operation="unpack_snapshot",
            path=path,
        )

    return result
