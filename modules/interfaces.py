"""
Capability interfaces consumed by the bridge core.

MetadataProvider answers questions about device values; BusClient moves
messages. Both are structural so tests can pass plain fakes.
"""
from typing import Protocol, runtime_checkable

from modules.value_key import ValueGenre, ValueKey


@runtime_checkable
class MetadataProvider(Protocol):
    """Read access to the live device model."""

    def genre(self, key: ValueKey) -> ValueGenre: ...

    def is_read_only(self, key: ValueKey) -> bool: ...

    def instance_count(self, network_id: int, node_id: int, command_class_id: int) -> int: ...

    def node_location(self, network_id: int, node_id: int) -> str: ...

    def node_name(self, network_id: int, node_id: int) -> str: ...

    def command_class_name(self, command_class_id: int) -> str: ...

    def value_label(self, key: ValueKey) -> str: ...

    def value_as_text(self, key: ValueKey) -> str: ...


@runtime_checkable
class BusClient(Protocol):
    """Low-level pub/sub transport. Each call reports success as a bool."""

    async def subscribe(self, topic: str) -> bool: ...

    async def unsubscribe(self, topic: str) -> bool: ...

    async def publish(self, topic: str, payload: str) -> bool: ...
