"""Tests for topic derivation.

Covers:
- Name-based and id-based topic layout
- Instance segment only for multi-instance command classes
- Prefix handling (empty prefix -> no leading separator)
- Unknown values propagate as UnknownValueError
"""

from __future__ import annotations

import pytest

from conftest import user_key
from error_handler import UnknownValueError
from modules.topics import build_topics


class TestBuildTopics:
    """build_topics against the shared two-node network."""

    def test_single_instance_value(self, network):
        assert build_topics("", user_key(1, 0x20), network) == (
            "location_h1_n1/name_h1_n1/basic/label1",
            "1/32/1",
        )

    def test_id_topic_uses_node_id(self, network):
        assert build_topics("", user_key(2, 0x32), network) == (
            "location_h1_n2/name_h1_n2/meter/label1",
            "2/50/1",
        )

    @pytest.mark.parametrize("cc, name, instance", [
        (0x25, "switch_binary", 1),
        (0x25, "switch_binary", 2),
        (0x26, "switch_multilevel", 1),
        (0x26, "switch_multilevel", 2),
    ])
    def test_multi_instance_values_carry_instance(self, network, cc, name, instance):
        name_topic, id_topic = build_topics("", user_key(1, cc, instance=instance), network)
        assert name_topic == f"location_h1_n1/name_h1_n1/{name}/{instance}/label1"
        assert id_topic == f"1/{cc}/{instance}/1"

    def test_prefix_prepends_both_topics(self, network):
        assert build_topics("prefix", user_key(1, 0x20), network) == (
            "prefix/location_h1_n1/name_h1_n1/basic/label1",
            "prefix/1/32/1",
        )
        assert build_topics("prefix", user_key(1, 0x25), network) == (
            "prefix/location_h1_n1/name_h1_n1/switch_binary/1/label1",
            "prefix/1/37/1/1",
        )

    def test_none_prefix_is_empty(self, network):
        assert build_topics(None, user_key(1, 0x20), network)[1] == "1/32/1"

    def test_instance_segment_appears_when_second_instance_added(self, network):
        key = user_key(2, 0x32)
        assert build_topics("", key, network)[1] == "2/50/1"

        network.add_value(user_key(2, 0x32, instance=3), "label1", value=0)
        assert build_topics("", key, network)[1] == "2/50/1/1"

    def test_labels_and_names_are_not_escaped(self, network):
        network.add_node(1, 7, location="living room", name="lamp+1")
        network.add_value(user_key(7, 0x25, index=0), "on/off")
        name_topic, _ = build_topics("", user_key(7, 0x25, index=0), network)
        assert name_topic == "living room/lamp+1/switch_binary/on/off"

    def test_unknown_command_class_name(self, network):
        network.add_value(user_key(2, 0xF1, index=4), "raw")
        assert build_topics("", user_key(2, 0xF1, index=4), network) == (
            "location_h1_n2/name_h1_n2/cc_0xF1/raw",
            "2/241/4",
        )

    def test_unknown_node_raises(self, network):
        with pytest.raises(UnknownValueError):
            build_topics("", user_key(9, 0x20), network)

    def test_unknown_value_raises(self, network):
        with pytest.raises(UnknownValueError):
            build_topics("", user_key(1, 0x20, index=42), network)
