"""Shared fixtures: a populated device network and a recording bus client."""

from __future__ import annotations

from typing import Dict, List, Set, Tuple

import pytest

from device import DeviceNetwork
from error_handler import ErrorHandler
from modules.publisher import Publisher
from modules.subscriptions import SubscriptionManager
from modules.value_key import ValueGenre, ValueKey, ValueType


def user_key(node_id: int, command_class_id: int, instance: int = 1, index: int = 1,
             network_id: int = 1, value_type: ValueType = ValueType.INT) -> ValueKey:
    return ValueKey(network_id, node_id, ValueGenre.USER, command_class_id, instance, index, value_type)


class FakeBus:
    """Bus client that records every call and fails on demand."""

    def __init__(self):
        self.subscribe_history: List[str] = []
        self.unsubscribe_history: List[str] = []
        self.publish_history: List[Tuple[str, str]] = []
        self.fail_subscribe: Set[str] = set()
        self.fail_unsubscribe: Set[str] = set()
        self.fail_publish: Set[str] = set()
        self.raise_on_publish: Set[str] = set()
        self.message_callback = None
        self.status_change_callback = None

    async def subscribe(self, topic: str) -> bool:
        if topic in self.fail_subscribe:
            return False
        self.subscribe_history.append(topic)
        return True

    async def unsubscribe(self, topic: str) -> bool:
        if topic in self.fail_unsubscribe:
            return False
        self.unsubscribe_history.append(topic)
        return True

    async def publish(self, topic: str, payload: str) -> bool:
        if topic in self.raise_on_publish:
            raise ConnectionError("broker went away")
        if topic in self.fail_publish:
            return False
        self.publish_history.append((topic, payload))
        return True

    def published(self) -> Dict[str, str]:
        return dict(self.publish_history)


@pytest.fixture
def network() -> DeviceNetwork:
    """Two nodes on home 1; node 1 carries two instances of 0x25 and 0x26."""
    net = DeviceNetwork()
    net.add_node(1, 1)
    net.add_node(1, 2)

    net.add_value(user_key(1, 0x20), "label1", value=10)
    net.add_value(user_key(1, 0x25, instance=1), "label1", value=0)
    net.add_value(user_key(1, 0x25, instance=2), "label1", value=1)
    net.add_value(user_key(1, 0x26, instance=1), "label1", value=50)
    net.add_value(user_key(1, 0x26, instance=2), "label1", value=99)
    net.add_value(user_key(2, 0x32), "label1", value=1234)
    return net


@pytest.fixture
def bus() -> FakeBus:
    return FakeBus()


@pytest.fixture
def error_handler() -> ErrorHandler:
    return ErrorHandler()


@pytest.fixture
def manager(network, bus, error_handler) -> SubscriptionManager:
    return SubscriptionManager(network, bus, error_handler=error_handler)


@pytest.fixture
def publisher(network, bus, error_handler) -> Publisher:
    return Publisher(network, bus, error_handler=error_handler)
