"""
Z-Wave Device Model - Nodes, values and change notifications.
Mirrors the controller library's value store closely enough for the bridge:
every value is addressed by a ValueKey and carries a label, a read-only flag
and a current value that can be rendered to and parsed from text.
"""
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from error_handler import UnknownValueError
from modules.command_classes import command_class_name
from modules.value_key import ValueGenre, ValueKey, ValueType

logger = logging.getLogger("device")

_TRUE_WORDS = {"true", "on", "1", "yes", "press"}
_FALSE_WORDS = {"false", "off", "0", "no", "release"}

# Integer ranges enforced when parsing inbound payloads
_INT_RANGES = {
    ValueType.BYTE: (0, 0xFF),
    ValueType.SHORT: (-0x8000, 0x7FFF),
    ValueType.INT: (-0x80000000, 0x7FFFFFFF),
}


@dataclass
class NodeValue:
    """A single value held by a node."""
    key: ValueKey
    label: str
    value: Any = None
    read_only: bool = False
    units: str = ""
    items: List[str] = field(default_factory=list)

    def as_text(self) -> str:
        vtype = self.key.value_type
        if self.value is None:
            return ""
        if vtype in (ValueType.BOOL, ValueType.BUTTON):
            return "True" if self.value else "False"
        if vtype == ValueType.DECIMAL:
            return str(float(self.value))
        if vtype == ValueType.RAW and isinstance(self.value, (bytes, bytearray)):
            return bytes(self.value).hex()
        return str(self.value)

    def parse_text(self, text: str) -> Any:
        """
        Convert an inbound payload into a value of this value's type.

        Raises:
            ValueError: the payload does not fit the value type.
        """
        vtype = self.key.value_type
        raw = text.strip()

        if vtype in (ValueType.BOOL, ValueType.BUTTON):
            word = raw.lower()
            if word in _TRUE_WORDS:
                return True
            if word in _FALSE_WORDS:
                return False
            raise ValueError(f"Not a boolean: {text!r}")

        if vtype in _INT_RANGES:
            number = int(raw, 0)
            low, high = _INT_RANGES[vtype]
            if not low <= number <= high:
                raise ValueError(f"{number} out of range for {vtype.value} ({low}..{high})")
            return number

        if vtype == ValueType.DECIMAL:
            return float(raw)

        if vtype == ValueType.LIST:
            if raw not in self.items:
                raise ValueError(f"{raw!r} is not one of {self.items}")
            return raw

        if vtype == ValueType.RAW:
            return bytes.fromhex(raw)

        return text


@dataclass
class ZWaveNode:
    """A device on the network."""
    network_id: int
    node_id: int
    location: str
    name: str
    values: Dict[ValueKey, NodeValue] = field(default_factory=dict)


class DeviceNetwork:
    """
    In-memory value store for one or more Z-Wave networks.

    Implements the MetadataProvider interface used by the bridge core and
    notifies listeners (value_added, value_changed, value_removed,
    node_removed) the way the controller's notification watcher does.
    """

    def __init__(self):
        self.nodes: Dict[Tuple[int, int], ZWaveNode] = {}
        self._listeners: List[Any] = []

    # =========================================================================
    # LISTENERS
    # =========================================================================

    def add_listener(self, listener):
        if listener not in self._listeners:
            self._listeners.append(listener)

    def remove_listener(self, listener):
        if listener in self._listeners:
            self._listeners.remove(listener)

    def listener_event(self, method_name: str, *args):
        """Call method_name on every listener that implements it."""
        for listener in list(self._listeners):
            method = getattr(listener, method_name, None)
            if method is None:
                continue
            try:
                method(*args)
            except Exception as e:
                logger.error(f"Listener {listener!r} failed on {method_name}: {e}", exc_info=True)

    # =========================================================================
    # NODES
    # =========================================================================

    def add_node(self, network_id: int, node_id: int, location: Optional[str] = None,
                 name: Optional[str] = None) -> ZWaveNode:
        node = ZWaveNode(
            network_id=network_id,
            node_id=node_id,
            location=location if location is not None else f"location_h{network_id}_n{node_id}",
            name=name if name is not None else f"name_h{network_id}_n{node_id}",
        )
        self.nodes[(network_id, node_id)] = node
        logger.info(f"Node {node_id} added to network {network_id} ({node.location}/{node.name})")
        return node

    def remove_node(self, network_id: int, node_id: int):
        node = self.nodes.get((network_id, node_id))
        if node is None:
            return
        # Listeners still need metadata for the keys, so notify first
        self.listener_event("node_removed", network_id, node_id, sorted(node.values))
        del self.nodes[(network_id, node_id)]
        logger.info(f"Node {node_id} removed from network {network_id}")

    def remove_all(self):
        for network_id, node_id in list(self.nodes):
            self.remove_node(network_id, node_id)

    def get_node(self, network_id: int, node_id: int) -> ZWaveNode:
        node = self.nodes.get((network_id, node_id))
        if node is None:
            raise UnknownValueError(f"h{network_id}/n{node_id}", "unknown node")
        return node

    # =========================================================================
    # VALUES
    # =========================================================================

    def _get_value(self, key: ValueKey) -> NodeValue:
        node = self.nodes.get((key.network_id, key.node_id))
        if node is None:
            raise UnknownValueError(key, "unknown node")
        value = node.values.get(key)
        if value is None:
            raise UnknownValueError(key)
        return value

    def add_value(self, key: ValueKey, label: str, value: Any = None, read_only: bool = False,
                  units: str = "", items: Optional[List[str]] = None) -> NodeValue:
        node = self.get_node(key.network_id, key.node_id)
        node_value = NodeValue(
            key=key,
            label=label,
            value=value,
            read_only=read_only,
            units=units,
            items=list(items or []),
        )
        node.values[key] = node_value
        logger.debug(f"[{key}] Value added: {label}={node_value.as_text()!r}")
        self.listener_event("value_added", key)
        return node_value

    def remove_value(self, key: ValueKey):
        node = self.nodes.get((key.network_id, key.node_id))
        if node is None or key not in node.values:
            return
        self.listener_event("value_removed", key)
        del node.values[key]
        logger.debug(f"[{key}] Value removed")

    def set_value(self, key: ValueKey, value: Any):
        """Store a new value (as reported by the device) and notify."""
        node_value = self._get_value(key)
        if node_value.value == value:
            return
        node_value.value = value
        self.listener_event("value_changed", key)

    def set_value_from_text(self, key: ValueKey, text: str) -> bool:
        """
        Apply an inbound text command to a value.

        Returns False if the value is read-only. Raises ValueError when the
        text cannot be converted to the value's type.
        """
        node_value = self._get_value(key)
        if node_value.read_only:
            logger.warning(f"[{key}] Refusing write to read-only value {node_value.label}")
            return False
        self.set_value(key, node_value.parse_text(text))
        return True

    def set_read_only(self, key: ValueKey, read_only: bool = True):
        self._get_value(key).read_only = read_only

    def values(self) -> List[ValueKey]:
        """All value keys across all nodes, sorted."""
        keys: List[ValueKey] = []
        for node in self.nodes.values():
            keys.extend(node.values)
        return sorted(keys)

    def get_value(self, key: ValueKey) -> Any:
        return self._get_value(key).value

    # =========================================================================
    # METADATA PROVIDER INTERFACE
    # =========================================================================

    def genre(self, key: ValueKey) -> ValueGenre:
        return self._get_value(key).key.genre

    def is_read_only(self, key: ValueKey) -> bool:
        return self._get_value(key).read_only

    def instance_count(self, network_id: int, node_id: int, command_class_id: int) -> int:
        node = self.get_node(network_id, node_id)
        instances = {k.instance for k in node.values if k.command_class_id == command_class_id}
        return len(instances)

    def node_location(self, network_id: int, node_id: int) -> str:
        return self.get_node(network_id, node_id).location

    def node_name(self, network_id: int, node_id: int) -> str:
        return self.get_node(network_id, node_id).name

    def command_class_name(self, command_class_id: int) -> str:
        return command_class_name(command_class_id)

    def value_label(self, key: ValueKey) -> str:
        return self._get_value(key).label

    def value_as_text(self, key: ValueKey) -> str:
        return self._get_value(key).as_text()


def load_devices(network: DeviceNetwork, devices: List[Dict[str, Any]]):
    """
    Populate a network from the `devices` section of the configuration.

    Each entry describes a node:

        - network_id: 1
          node_id: 2
          location: kitchen
          name: dimmer
          values:
            - {command_class_id: 0x26, index: 0, label: level, value_type: byte, value: 0}
    """
    for entry in devices or []:
        network_id = int(entry.get("network_id", 1))
        node_id = int(entry["node_id"])
        network.add_node(network_id, node_id, location=entry.get("location"), name=entry.get("name"))

        for spec in entry.get("values", []):
            key = ValueKey.from_dict({"network_id": network_id, "node_id": node_id, **spec})
            network.add_value(
                key,
                label=str(spec.get("label", f"value_{key.index}")),
                value=spec.get("value"),
                read_only=bool(spec.get("read_only", False)),
                units=str(spec.get("units", "")),
                items=spec.get("items"),
            )

    logger.info(f"Loaded {len(network.nodes)} nodes with {len(network.values())} values from config")
