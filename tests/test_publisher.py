"""Tests for value publication.

Covers:
- Two publishes per value, same payload on both topics
- Publication is independent of subscriptions (read-only, unsubscribed)
- A failing topic does not suppress the other one
"""

from __future__ import annotations

import pytest

from conftest import user_key
from error_handler import UnknownValueError


RUNS = {
    user_key(1, 0x20): ("location_h1_n1/name_h1_n1/basic/label1", "1/32/1"),
    user_key(2, 0x32): ("location_h1_n2/name_h1_n2/meter/label1", "2/50/1"),
    user_key(1, 0x25, instance=1): ("location_h1_n1/name_h1_n1/switch_binary/1/label1", "1/37/1/1"),
    user_key(1, 0x25, instance=2): ("location_h1_n1/name_h1_n1/switch_binary/2/label1", "1/37/2/1"),
}


class TestPublish:

    @pytest.mark.asyncio
    async def test_publish_runs(self, network, publisher, bus):
        for key in RUNS:
            await publisher.publish("", key)

        assert len(bus.publish_history) == 2 * len(RUNS)

        expected = {}
        for key, (name_topic, id_topic) in RUNS.items():
            expected[name_topic] = network.value_as_text(key)
            expected[id_topic] = network.value_as_text(key)
        assert bus.published() == expected

    @pytest.mark.asyncio
    async def test_publish_returns_per_topic_results(self, publisher):
        results = await publisher.publish("zwave", user_key(1, 0x20))
        assert results == {
            "zwave/location_h1_n1/name_h1_n1/basic/label1": True,
            "zwave/1/32/1": True,
        }

    @pytest.mark.asyncio
    async def test_read_only_values_are_published(self, network, publisher, manager, bus):
        key = user_key(2, 0x32)
        network.set_read_only(key)

        await manager.subscribe("", key)
        await publisher.publish("", key)

        assert manager.list_endpoints() == {}
        assert bus.published() == {
            "location_h1_n2/name_h1_n2/meter/label1": "1234",
            "2/50/1": "1234",
        }

    @pytest.mark.asyncio
    async def test_failed_topic_does_not_block_other(self, publisher, bus, error_handler):
        bus.fail_publish.add("location_h1_n1/name_h1_n1/basic/label1")

        results = await publisher.publish("", user_key(1, 0x20))

        assert results == {"location_h1_n1/name_h1_n1/basic/label1": False, "1/32/1": True}
        assert bus.publish_history == [("1/32/1", "10")]
        assert error_handler.get_stats()["total_failures"] == 1

    @pytest.mark.asyncio
    async def test_exception_on_topic_does_not_block_other(self, publisher, bus):
        bus.raise_on_publish.add("1/32/1")

        results = await publisher.publish("", user_key(1, 0x20))

        assert results["1/32/1"] is False
        assert bus.publish_history == [("location_h1_n1/name_h1_n1/basic/label1", "10")]

    @pytest.mark.asyncio
    async def test_unknown_value_propagates(self, publisher, bus):
        with pytest.raises(UnknownValueError):
            await publisher.publish("", user_key(1, 0x99))
        assert bus.publish_history == []
