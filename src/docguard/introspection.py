"""
introspection.py - Read-only queries over a live collection's constraints.
"""

from typing import Any, Sequence


def as_field_name_list(names: str | Sequence[str]) -> list[str]:
    """Wrap a lone field name in a list; copy any other sequence."""
    if isinstance(names, str):
        return [names]
    return list(names)


def indexed_field_names(collection: Any) -> list[str]:
    """Names of fields carrying a binary index, or an empty list."""
    indices = getattr(collection, "binary_indices", None)
    return list(indices) if indices else []


def unique_field_names(collection: Any) -> list[str]:
    """Names of fields enforced as unique, or an empty list."""
    return list(getattr(collection, "unique_names", None) or [])


def has_unique_field_names(collection: Any, names: str | Sequence[str]) -> bool:
    """
    Check whether a collection enforces uniqueness on every given field.

    Order does not matter. The collection may enforce more fields than
    asked for.

    Args:
        collection: Live collection
        names: A field name or a sequence of field names

    Returns:
        True if every name is a unique field of the collection
    """
    enforced = set(unique_field_names(collection))
    return all(name in enforced for name in as_field_name_list(names))
