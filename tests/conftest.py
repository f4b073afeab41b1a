"""
conftest.py - pytest fixtures for docguard tests.
"""

import os
import tempfile
from typing import Optional

import pytest
from pydantic import BaseModel, ConfigDict, Field, StrictBool

from docguard import CollectionInitializer, ListSchema, PydanticSchema, create_in_memory_db


class Page(BaseModel):
    """Record shape used across the validated-operation tests."""
    model_config = ConfigDict(extra="allow")

    slug: str = Field(min_length=1)
    content: Optional[str] = None
    is_disabled: StrictBool = False


@pytest.fixture
def temp_dir():
    """Create a temporary directory for test databases."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield tmpdir


@pytest.fixture
def db_path(temp_dir):
    return os.path.join(temp_dir, "test.docdb")


@pytest.fixture
def db():
    """In-memory database, never touches disk."""
    return create_in_memory_db("test.docdb")


@pytest.fixture
def page_schema():
    return PydanticSchema(Page)


@pytest.fixture
def page_initializer(db, page_schema):
    return CollectionInitializer(
        db,
        "TESTS",
        ["slug"],
        collection_schema=ListSchema(page_schema, unique="slug"),
        record_schema=page_schema,
    )


@pytest.fixture
def pages(page_initializer):
    """Validated 'TESTS' collection seeded with slugs 'a' and 'b'."""
    collection = page_initializer.initialize()
    collection.insert({"slug": "a", "content": "123"})
    collection.insert({"slug": "b", "content": "456"})
    return collection
