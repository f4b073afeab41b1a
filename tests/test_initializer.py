"""
test_initializer.py - Tests for collection initialization and rebuild.

Covers the create/keep/rebuild decision and the guarantee that a
rejected rebuild leaves the original collection untouched.
"""

from unittest.mock import Mock

import pytest
from pydantic import BaseModel

from docguard import (
    CollectionInitializer,
    ConfigurationError,
    DatabaseError,
    LifecycleHooks,
    ListSchema,
    PydanticSchema,
    ValidatedCollection,
    ValidationError,
)
from docguard.db.collection import Collection
from docguard.schema import ValidationResult


def snapshot_values(collection):
    return [{k: v for k, v in r.items() if k != "meta"} for r in collection.data]


# =============================================================================
# Construction
# =============================================================================

class TestConstruction:
    def test_accepts_string_or_list(self, db):
        assert CollectionInitializer(db, "TESTS", "slug").unique_field_names == ("slug",)
        assert CollectionInitializer(db, "TESTS", ["a", "b"]).unique_field_names == ("a", "b")
        assert CollectionInitializer(db, "TESTS").unique_field_names == ()

    @pytest.mark.parametrize(
        "unique",
        [7, [True, False, True], ["slug", "slug"], [""], ["slug", 3], None, {"slug": 1}],
    )
    def test_rejects_malformed_unique_field_names(self, unique):
        """Fails before the database is touched."""
        db = Mock()
        with pytest.raises(ConfigurationError):
            CollectionInitializer(db, "TESTS", unique)
        assert db.mock_calls == []

    def test_configuration_error_is_validation_error(self, db):
        with pytest.raises(ValidationError):
            CollectionInitializer(db, "TESTS", 7)

    def test_rejects_schema_without_validate(self, db):
        with pytest.raises(ConfigurationError):
            CollectionInitializer(db, "TESTS", record_schema=object())

    def test_rejects_empty_collection_name(self, db):
        with pytest.raises(ConfigurationError):
            CollectionInitializer(db, "")


# =============================================================================
# create / rebuild
# =============================================================================

class TestCreate:
    def test_creates_collection_with_unique_constraint(self, db):
        CollectionInitializer(db, "TESTS", ["name", "content"]).create()
        collection = db.get_collection("TESTS")
        assert isinstance(collection, Collection)
        assert collection.name == "TESTS"
        assert "name" in collection.unique_names
        assert "content" in collection.unique_names

    def test_calls_create_hooks(self, db):
        pre_create, post_create = Mock(), Mock()
        initializer = CollectionInitializer(
            db, "TESTS", hooks=LifecycleHooks(pre_create=pre_create, post_create=post_create)
        )
        initializer.create()
        pre_create.assert_called_once_with(initializer)
        post_create.assert_called_once_with(initializer)

    def test_pre_create_runs_before_collection_exists(self, db):
        seen = []
        hooks = LifecycleHooks(pre_create=lambda i: seen.append(i.db.get_collection("TESTS")))
        CollectionInitializer(db, "TESTS", hooks=hooks).create()
        assert seen == [None]

    def test_create_twice_fails(self, db):
        initializer = CollectionInitializer(db, "TESTS")
        initializer.create()
        with pytest.raises(DatabaseError):
            initializer.create()


class TestRebuild:
    def test_calls_rebuild_hooks(self, db):
        pre_rebuild, post_rebuild = Mock(), Mock()
        initializer = CollectionInitializer(
            db, "TESTS", hooks=LifecycleHooks(pre_rebuild=pre_rebuild, post_rebuild=post_rebuild)
        )
        initializer.rebuild()
        pre_rebuild.assert_called_once_with(initializer)
        post_rebuild.assert_called_once_with(initializer)
        assert db.get_collection("TESTS") is not None

    def test_preserves_existing_data(self, db):
        data = [{"name": "john", "content": "smith"}, {"name": "julius", "content": "caesar"}]
        db.add_collection("TESTS").insert(data)
        CollectionInitializer(db, "TESTS", ["name"]).rebuild()

        collection = db.get_collection("TESTS")
        assert collection.count() == 2
        assert collection.unique_names == ["name"]
        assert len(collection.find({"name": "john", "content": "smith"})) == 1
        assert len(collection.find({"name": "julius", "content": "caesar"})) == 1

    def test_replays_in_original_order(self, db):
        old = db.add_collection("TESTS")
        old.insert([{"n": i} for i in range(5)])
        old.remove(1)
        CollectionInitializer(db, "TESTS", ["n"]).rebuild()
        assert [r["n"] for r in db.get_collection("TESTS").data] == [1, 2, 3, 4]

    def test_rejects_duplicates_and_keeps_original(self, db):
        data = [{"name": "john", "content": "smith"}, {"name": "john", "content": "travolta"}]
        original = db.add_collection("TESTS")
        original.insert(data)
        before = snapshot_values(original)

        with pytest.raises(ValidationError) as exc_info:
            CollectionInitializer(db, "TESTS", ["name"]).rebuild()

        assert exc_info.value.field == "name"
        collection = db.get_collection("TESTS")
        assert collection is original
        assert collection.count() == 2
        assert snapshot_values(collection) == before

    def test_rejects_data_invalid_for_collection_schema(self, db):
        class Named(BaseModel):
            name: int

        db.add_collection("TESTS").insert([{"name": "john"}])
        initializer = CollectionInitializer(
            db, "TESTS", [], collection_schema=ListSchema(PydanticSchema(Named))
        )
        with pytest.raises(ValidationError) as exc_info:
            initializer.rebuild()
        assert exc_info.value.details is not None
        assert db.get_collection("TESTS").find({"name": "john"})

    def test_post_rebuild_not_called_on_rejection(self, db):
        post_rebuild = Mock()
        db.add_collection("TESTS").insert([{"name": "a"}, {"name": "a"}])
        initializer = CollectionInitializer(
            db, "TESTS", ["name"], hooks=LifecycleHooks(post_rebuild=post_rebuild)
        )
        with pytest.raises(ValidationError):
            initializer.rebuild()
        post_rebuild.assert_not_called()

    def test_restores_original_when_replay_fails(self, db):
        """A collection schema yielding non-records cannot be replayed."""
        broken = Mock()
        broken.validate.return_value = ValidationResult(None, ["not a record"])
        original = db.add_collection("TESTS")
        original.insert({"name": "john"})

        with pytest.raises(ValidationError):
            CollectionInitializer(db, "TESTS", ["name"], collection_schema=broken).rebuild()
        assert db.get_collection("TESTS") is original
        assert original.count() == 1

    def test_fresh_storage_ids(self, db):
        old = db.add_collection("TESTS")
        old.insert([{"n": 1}, {"n": 2}, {"n": 3}])
        old.remove(1)
        CollectionInitializer(db, "TESTS", ["n"]).rebuild()
        assert [r["$id"] for r in db.get_collection("TESTS").data] == [1, 2]

    def test_replays_schema_validated_records(self, db, page_initializer):
        """Schema defaults are filled in; record and field order are kept."""
        db.add_collection("TESTS").insert([
            {"slug": "b", "content": "2"},
            {"slug": "a"},
        ])
        page_initializer.rebuild()

        stripped = [
            {k: v for k, v in r.items() if k not in ("$id", "meta")}
            for r in db.get_collection("TESTS").data
        ]
        assert stripped == [
            {"slug": "b", "content": "2", "is_disabled": False},
            {"slug": "a", "content": None, "is_disabled": False},
        ]
        assert [list(r) for r in stripped] == [["slug", "content", "is_disabled"]] * 2

    def test_rejects_equal_numbers_of_different_types(self, db):
        original = db.add_collection("TESTS")
        original.insert([{"rank": 1}, {"rank": 1.0}])

        with pytest.raises(ValidationError) as exc_info:
            CollectionInitializer(db, "TESTS", ["rank"]).rebuild()
        assert exc_info.value.field == "rank"
        assert db.get_collection("TESTS") is original
        assert original.count() == 2


# =============================================================================
# initialize / should_rebuild
# =============================================================================

class TestInitialize:
    def test_creates_missing_collection(self, db):
        collection = CollectionInitializer(db, "TESTS").initialize()
        assert isinstance(collection, ValidatedCollection)
        assert collection.name == "TESTS"
        assert collection.collection is db.get_collection("TESTS")

    def test_keeps_valid_collection(self, db):
        db.add_collection("TESTS").insert([{"id": 1}, {"id": 2}])
        initializer = CollectionInitializer(db, "TESTS")
        rebuild = Mock()
        initializer.rebuild = rebuild

        collection = initializer.initialize()
        rebuild.assert_not_called()
        assert collection.collection is db.get_collection("TESTS")
        assert collection.count() == 2

    def test_recreates_collection_missing_constraint(self, db):
        db.add_collection("TESTS")
        collection = CollectionInitializer(db, "TESTS", ["name"]).initialize()
        assert collection.collection is db.get_collection("TESTS")
        assert "name" in collection.unique_field_names

    def test_drops_constraints_no_longer_required(self, db):
        """The enforced set ends up equal to the requested set."""
        db.add_collection("TESTS", unique=["name", "content"])
        initializer = CollectionInitializer(db, "TESTS", ["name"])
        assert initializer.should_rebuild() is True
        collection = initializer.initialize()
        assert collection.unique_field_names == ["name"]

    def test_should_rebuild_states(self, db):
        initializer = CollectionInitializer(db, "TESTS", ["content", "name"])
        assert initializer.should_rebuild() is True
        db.add_collection("TESTS", unique=["name"])
        assert initializer.should_rebuild() is True
        db.remove_collection("TESTS")
        db.add_collection("TESTS", unique=["name", "content"])
        assert initializer.should_rebuild() is False

    def test_wrapper_rebuilt_on_every_call(self, page_initializer):
        first = page_initializer.initialize()
        second = page_initializer.initialize()
        assert first is not second
        assert first.collection is second.collection
        assert second.record_schema is page_initializer.record_schema

    def test_rejected_rebuild_propagates_from_initialize(self, db):
        db.add_collection("TESTS").insert([{"slug": "a"}, {"slug": "a"}])
        with pytest.raises(ValidationError):
            CollectionInitializer(db, "TESTS", "slug").initialize()
        assert db.get_collection("TESTS").count() == 2
