"""Tests for the endpoint registry.

Covers:
- Idempotent insert and remove
- Collision detection and explicit overwrite
- Reverse lookup, per-key topics, enumeration, bulk removal
"""

from __future__ import annotations

import pytest

from conftest import user_key
from error_handler import TopicCollisionError
from modules.endpoint_registry import EndpointRegistry


@pytest.fixture
def registry():
    return EndpointRegistry()


class TestInsert:

    def test_insert_new(self, registry):
        assert registry.insert("1/32/1", user_key(1, 0x20)) is True
        assert registry.lookup_by_topic("1/32/1") == user_key(1, 0x20)
        assert len(registry) == 1

    def test_insert_same_binding_is_noop(self, registry):
        registry.insert("1/32/1", user_key(1, 0x20))
        assert registry.insert("1/32/1", user_key(1, 0x20)) is False
        assert len(registry) == 1

    def test_collision_raises_and_keeps_original(self, registry):
        registry.insert("a/b", user_key(1, 0x20))
        with pytest.raises(TopicCollisionError) as exc:
            registry.insert("a/b", user_key(2, 0x20))
        assert exc.value.topic == "a/b"
        assert registry.lookup_by_topic("a/b") == user_key(1, 0x20)

    def test_overwrite_is_last_write_wins(self, registry):
        registry.insert("a/b", user_key(1, 0x20))
        assert registry.insert("a/b", user_key(2, 0x20), overwrite=True) is True
        assert registry.lookup_by_topic("a/b") == user_key(2, 0x20)


class TestRemoveAndLookup:

    def test_remove_absent_is_noop(self, registry):
        assert registry.remove("nothing/here") is None
        assert len(registry) == 0

    def test_remove_returns_key(self, registry):
        registry.insert("1/32/1", user_key(1, 0x20))
        assert registry.remove("1/32/1") == user_key(1, 0x20)
        assert "1/32/1" not in registry

    def test_topics_for_key(self, registry):
        key = user_key(1, 0x20)
        registry.insert("location_h1_n1/name_h1_n1/basic/label1", key)
        registry.insert("1/32/1", key)
        registry.insert("2/50/1", user_key(2, 0x32))
        assert sorted(registry.topics_for(key)) == ["1/32/1", "location_h1_n1/name_h1_n1/basic/label1"]

    def test_all_is_a_copy(self, registry):
        registry.insert("1/32/1", user_key(1, 0x20))
        snapshot = registry.all()
        snapshot.clear()
        assert len(registry) == 1

    def test_remove_all(self, registry):
        registry.insert("1/32/1", user_key(1, 0x20))
        registry.insert("2/50/1", user_key(2, 0x32))
        removed = registry.remove_all()
        assert set(removed) == {"1/32/1", "2/50/1"}
        assert len(registry) == 0
        assert registry.lookup_by_topic("1/32/1") is None
