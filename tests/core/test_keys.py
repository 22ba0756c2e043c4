"""
Tests for storage keys and query fingerprints.
"""
import pytest

from chat_cache.core.keys import (
    StorageKey,
    channel_key,
    composite_id,
    fingerprint,
    member_key,
    normalize_sort,
    owner_segment,
    reaction_id,
)


class TestStorageKey:
    """Tests for key rendering and derived ids."""

    def test_render_namespaces_by_user(self):
        key = channel_key("messaging:general")

        assert key.render("chatcache", "U1234") == "chatcache:U1234@channels:messaging:general"
        assert key.render("chatcache", "U1") != key.render("chatcache", "U2")

    def test_owner_segment_is_unambiguous(self):
        key = channel_key("messaging:general")

        assert owner_segment("john@example.com") == "john%40example.com"
        assert key.render("chatcache", "a:b") == "chatcache:a%3Ab@channels:messaging:general"
        assert not key.render("chatcache", "john@example.com").startswith("chatcache:john@")

    def test_member_key_uses_composite_id(self):
        assert member_key("messaging:general", "bob") == StorageKey("members", "messaging:general|bob")
        assert composite_id("messaging:general", "bob") == "messaging:general|bob"

    def test_reaction_id_concatenates_identity(self):
        assert reaction_id("m1", "bob", "like") == "m1boblike"


class TestNormalizeSort:
    """Tests for normalize_sort() function."""

    def test_mapping_keeps_priority_order(self):
        sort = {"last_message_at": -1, "created_at": 1}
        assert normalize_sort(sort) == [("last_message_at", -1), ("created_at", 1)]

    def test_accepts_pairs(self):
        assert normalize_sort([("updated_at", -1)]) == [("updated_at", -1)]

    @pytest.mark.parametrize("sort", [None, {}, []])
    def test_empty(self, sort):
        assert normalize_sort(sort) == []

    def test_non_descending_direction_is_ascending(self):
        assert normalize_sort({"created_at": 0}) == [("created_at", 1)]


class TestFingerprint:
    """Tests for fingerprint() canonicalization."""

    def test_filter_key_order_is_irrelevant(self):
        a = {"type": "messaging", "members": {"$in": ["alice"], "$nin": ["bob"]}}
        b = {"members": {"$nin": ["bob"], "$in": ["alice"]}, "type": "messaging"}

        assert fingerprint(a, {"last_message_at": -1}) == fingerprint(b, {"last_message_at": -1})

    def test_sort_priority_matters(self):
        first = fingerprint({}, {"last_message_at": -1, "created_at": -1})
        second = fingerprint({}, {"created_at": -1, "last_message_at": -1})

        assert first != second

    def test_sort_direction_matters(self):
        assert fingerprint({}, {"created_at": -1}) != fingerprint({}, {"created_at": 1})

    def test_has_no_whitespace(self):
        assert " " not in fingerprint({"type": "messaging"}, {"created_at": -1})

    def test_none_filters_equal_empty_filters(self):
        assert fingerprint(None, None) == fingerprint({}, [])
