"""
Value Identifiers
=================
Composite key identifying a single Z-Wave device value.

A ValueKey is a plain, immutable descriptor. Callers build a fresh one per
operation; two keys with the same fields are the same value.
"""
from dataclasses import dataclass
from enum import Enum
from functools import total_ordering
from typing import Any, Dict


class ValueGenre(Enum):
    """Classification of a value. Only USER values are bridged to MQTT."""
    BASIC = "basic"
    USER = "user"
    CONFIG = "config"
    SYSTEM = "system"


class ValueType(Enum):
    """Payload type of a value. Interpreted by the device model only."""
    BOOL = "bool"
    BYTE = "byte"
    DECIMAL = "decimal"
    INT = "int"
    LIST = "list"
    SCHEDULE = "schedule"
    SHORT = "short"
    STRING = "string"
    BUTTON = "button"
    RAW = "raw"


# Enums are ordered by declaration so keys sort predictably
_GENRE_ORDER = {genre: i for i, genre in enumerate(ValueGenre)}
_TYPE_ORDER = {vtype: i for i, vtype in enumerate(ValueType)}


@total_ordering
@dataclass(frozen=True)
class ValueKey:
    """
    Identifies exactly one device value.

    Fields follow the controller's own addressing:
    home (network) -> node -> genre -> command class -> instance -> index.
    """
    network_id: int
    node_id: int
    genre: ValueGenre
    command_class_id: int
    instance: int
    index: int
    value_type: ValueType

    def __post_init__(self):
        if self.instance < 1:
            raise ValueError(f"Instance must be >= 1, got {self.instance}")

    def _sort_tuple(self):
        return (
            self.network_id,
            self.node_id,
            _GENRE_ORDER[self.genre],
            self.command_class_id,
            self.instance,
            self.index,
            _TYPE_ORDER[self.value_type],
        )

    def __lt__(self, other: "ValueKey") -> bool:
        if not isinstance(other, ValueKey):
            return NotImplemented
        return self._sort_tuple() < other._sort_tuple()

    def __str__(self) -> str:
        return (
            f"h{self.network_id}/n{self.node_id}/{self.genre.value}/"
            f"cc0x{self.command_class_id:02X}/i{self.instance}/x{self.index}"
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "network_id": self.network_id,
            "node_id": self.node_id,
            "genre": self.genre.value,
            "command_class_id": self.command_class_id,
            "instance": self.instance,
            "index": self.index,
            "value_type": self.value_type.value,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "ValueKey":
        """Build a key from a dict such as the one produced by to_dict()."""
        return cls(
            network_id=int(data["network_id"]),
            node_id=int(data["node_id"]),
            genre=ValueGenre(str(data.get("genre", "user")).lower()),
            command_class_id=int(data["command_class_id"]),
            instance=int(data.get("instance", 1)),
            index=int(data["index"]),
            value_type=ValueType(str(data.get("value_type", "int")).lower()),
        )
