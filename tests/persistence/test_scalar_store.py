"""
Tests for the synchronous scalar (key/value) store.
"""

import pytest

from eduportal.errors import QuotaExceeded
from eduportal.persistence import ScalarStore


class TestReadWrite:
    """Basic get/set behaviour."""

    def test_set_then_get(self, scalar_store):
        scalar_store.set("users", [{"id": "u1"}])
        assert scalar_store.get("users", []) == [{"id": "u1"}]

    def test_missing_key_returns_default_without_writing(self, scalar_store):
        assert scalar_store.get("completions:u1", []) == []
        assert scalar_store.contains("completions:u1") is False

    def test_default_is_copied(self, scalar_store):
        default = {"a": [1]}
        value = scalar_store.get("progress:u1", default)
        value["a"].append(2)
        assert default == {"a": [1]}

    def test_overwrite_replaces_value(self, scalar_store):
        scalar_store.set("k", [1])
        scalar_store.set("k", [2, 3])
        assert scalar_store.get("k", []) == [2, 3]

    def test_remove(self, scalar_store):
        scalar_store.set("videos", [])
        assert scalar_store.remove("videos") is True
        assert scalar_store.remove("videos") is False
        assert scalar_store.contains("videos") is False

    def test_keys_with_prefix(self, scalar_store):
        scalar_store.set("progress:u1", {})
        scalar_store.set("progress:u2", {})
        scalar_store.set("users", [])
        assert scalar_store.keys("progress:") == ["progress:u1", "progress:u2"]

    def test_values_survive_reopen(self, tmp_path):
        path = tmp_path / "scalar.db"
        first = ScalarStore(path)
        first.set("users", [{"id": "u1"}])
        first.close()

        second = ScalarStore(path)
        try:
            assert second.get("users", []) == [{"id": "u1"}]
        finally:
            second.close()


class TestSelfHealing:
    """Corrupted entries are reset to the caller's default and persisted."""

    def test_undecodable_json_resets_to_default(self, scalar_store):
        scalar_store.set_raw("completions:u1", "{not json")
        assert scalar_store.get("completions:u1", []) == []
        assert scalar_store.get("completions:u1", None) == []

    def test_wrong_shape_list_expected(self, scalar_store):
        scalar_store.set("completions:u1", {"video_1": True})
        assert scalar_store.get("completions:u1", []) == []
        assert scalar_store.get("completions:u1", None) == []

    def test_wrong_shape_dict_expected(self, scalar_store):
        scalar_store.set("progress:u1", ["video_1"])
        assert scalar_store.get("progress:u1", {}) == {}
        assert scalar_store.get("progress:u1", None) == {}

    def test_json_null_counts_as_wrong_shape(self, scalar_store):
        scalar_store.set_raw("users", "null")
        default = [{"id": "seed"}]
        assert scalar_store.get("users", default) == default
        assert scalar_store.get("users", None) == default

    def test_explicit_expected_type(self, scalar_store):
        scalar_store.set("migration_state", 42)
        assert scalar_store.get("migration_state", "unchecked", expected_type=str) == "unchecked"
        assert scalar_store.get("migration_state", None) == "unchecked"

    def test_reset_is_logged(self, scalar_store, caplog):
        scalar_store.set_raw("users", "oops")
        with caplog.at_level("WARNING"):
            scalar_store.get("users", [])
        assert "Resetting corrupted value" in caplog.text


class TestQuota:
    """Writes beyond the quota raise QuotaExceeded and leave data untouched."""

    def test_write_over_quota_raises(self, tmp_path):
        store = ScalarStore(tmp_path / "scalar.db", quota_bytes=64)
        try:
            with pytest.raises(QuotaExceeded):
                store.set("big", "x" * 100)
            assert store.contains("big") is False
        finally:
            store.close()

    def test_replacing_a_key_does_not_double_count(self, tmp_path):
        store = ScalarStore(tmp_path / "scalar.db", quota_bytes=64)
        try:
            store.set("k", "x" * 40)
            store.set("k", "y" * 40)
            assert store.get("k") == "y" * 40
        finally:
            store.close()

    def test_failed_write_keeps_previous_value(self, tmp_path):
        store = ScalarStore(tmp_path / "scalar.db", quota_bytes=64)
        try:
            store.set("k", [1, 2])
            with pytest.raises(QuotaExceeded):
                store.set("k", ["z" * 100])
            assert store.get("k", []) == [1, 2]
        finally:
            store.close()

    def test_usage_bytes(self, scalar_store):
        scalar_store.set("ab", "c")
        # key "ab" (2) + JSON '"c"' (3)
        assert scalar_store.usage_bytes() == 5

    def test_other_write_failures_propagate(self, scalar_store):
        with pytest.raises(TypeError):
            scalar_store.set("bad", {"when": object()})
