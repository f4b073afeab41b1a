"""
test_records.py - Tests for storage-owned field helpers.
"""

from docguard.records import (
    defaults_deep,
    id_to_storage_id,
    new_meta,
    pick_storage_fields,
    storage_id_to_id,
    strip_storage_fields,
    touch_meta,
    value_key,
)


class TestStorageFields:
    """Adding, stripping and renaming storage fields."""

    def test_strip_removes_id_and_meta(self):
        """Storage fields are dropped, data fields kept."""
        record = {
            "$id": 1,
            "meta": {"revision": 0, "created": 1509432952783, "version": 0},
            "content": "content",
        }
        result = strip_storage_fields(record)
        assert result == {"content": "content"}
        # Input untouched
        assert record["$id"] == 1

    def test_pick_copies_only_storage_fields(self):
        record = {"$id": 3, "meta": {"revision": 2}, "slug": "a"}
        picked = pick_storage_fields(record)
        assert picked == {"$id": 3, "meta": {"revision": 2}}

        picked["meta"]["revision"] = 99
        assert record["meta"]["revision"] == 2

    def test_pick_skips_absent_fields(self):
        assert pick_storage_fields({"slug": "a"}) == {}

    def test_id_to_storage_id(self):
        """Renames the application id field to $id."""
        assert id_to_storage_id({"id": 44, "content": "xxx"}) == {"$id": 44, "content": "xxx"}

    def test_storage_id_to_id(self):
        """Renames $id to the application id field."""
        assert storage_id_to_id({"$id": 44, "content": "xxx"}) == {"id": 44, "content": "xxx"}

    def test_rename_without_id_is_identity(self):
        assert id_to_storage_id({"content": "xxx"}) == {"content": "xxx"}


class TestDefaultsDeep:
    """Recursive merge used by patching."""

    def test_earlier_sources_win(self):
        assert defaults_deep({"a": 1}, {"a": 2, "b": 3}) == {"a": 1, "b": 3}

    def test_nested_dicts_merge(self):
        result = defaults_deep({"s": {"x": 1}}, {"s": {"x": 2, "y": 3}})
        assert result == {"s": {"x": 1, "y": 3}}

    def test_non_dict_value_not_merged_into(self):
        """A scalar that wins is not replaced by a later dict."""
        assert defaults_deep({"s": None}, {"s": {"x": 1}}) == {"s": None}

    def test_result_shares_nothing_with_inputs(self):
        source = {"tags": ["a"]}
        result = defaults_deep(source)
        result["tags"].append("b")
        assert source == {"tags": ["a"]}


class TestMeta:
    def test_new_meta(self):
        assert new_meta(1000) == {"revision": 0, "created": 1000, "version": 0}

    def test_touch_meta_bumps_revision(self):
        touched = touch_meta({"revision": 0, "created": 1000, "version": 0}, 2000)
        assert touched["revision"] == 1
        assert touched["updated"] == 2000
        assert touched["created"] == 1000


class TestValueKey:
    def test_bool_and_int_differ(self):
        assert value_key(True) != value_key(1)

    def test_int_and_float_share_key(self):
        assert value_key(1) == value_key(1.0)
        assert value_key(True) != value_key(1.0)

    def test_equal_dicts_share_key(self):
        assert value_key({"a": 1, "b": 2}) == value_key({"b": 2, "a": 1})
