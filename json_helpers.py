"""
JSON Serialisation Helpers
==========================
Turns bridge objects (ValueKeys, enums, endpoint maps, raw bytes) into
JSON-compatible structures for the HTTP API.
"""
import logging
from enum import Enum
from typing import Any, Dict

from modules.value_key import ValueKey

logger = logging.getLogger("json_helpers")


def serialise_value(value: Any) -> Any:
    """
    Recursively serialise a value to be JSON-compatible.

    Handles:
    - ValueKey (as a field dict)
    - Nested structures (dict, list, tuple, set)
    - Enums
    - bytes (utf-8 if possible, hex otherwise)
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value

    if isinstance(value, ValueKey):
        return value.to_dict()

    if isinstance(value, Enum):
        return value.value

    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode('utf-8')
        except UnicodeDecodeError:
            return bytes(value).hex()

    if isinstance(value, dict):
        return {serialise_key(k): serialise_value(v) for k, v in value.items()}

    if isinstance(value, (list, tuple, set)):
        return [serialise_value(item) for item in value]

    # Last resort: convert to string
    logger.debug(f"Serialising {type(value).__name__} via str()")
    return str(value)


def serialise_key(key: Any) -> str:
    """Convert any key type to a string for JSON dict keys."""
    if key is None:
        return "null"
    if isinstance(key, str):
        return key
    if isinstance(key, Enum):
        return str(key.value)
    return str(key)


def serialise_endpoints(endpoints: Dict[str, ValueKey]) -> Dict[str, Dict[str, Any]]:
    """Endpoint map (topic -> ValueKey) as topic -> key fields, sorted by topic."""
    return {topic: endpoints[topic].to_dict() for topic in sorted(endpoints)}


def prepare_for_json(data: Any) -> Any:
    """Prepare data structure for JSON serialization."""
    return serialise_value(data)
