"""
Endpoint Registry
Keeps the active topic -> value bindings for subscribed values.

Used for inbound message routing (topic -> value) and for exact teardown.
The registry does no locking; its owner serializes mutations.
"""
import logging
from typing import Dict, List, Optional

from error_handler import TopicCollisionError
from modules.value_key import ValueKey

logger = logging.getLogger("registry")


class EndpointRegistry:
    """Mapping of topic string to ValueKey."""

    def __init__(self):
        self._endpoints: Dict[str, ValueKey] = {}

    def __len__(self) -> int:
        return len(self._endpoints)

    def __contains__(self, topic: str) -> bool:
        return topic in self._endpoints

    def insert(self, topic: str, key: ValueKey, overwrite: bool = False) -> bool:
        """
        Bind a topic to a value.

        Returns True if a new binding was created, False if the exact same
        binding already existed. Rebinding a topic to a different value
        raises TopicCollisionError unless overwrite is set.
        """
        existing = self._endpoints.get(topic)
        if existing is not None:
            if existing == key:
                return False
            if not overwrite:
                raise TopicCollisionError(topic, existing, key)
            logger.warning(f"Rebinding topic '{topic}': {existing} -> {key}")

        self._endpoints[topic] = key
        return True

    def remove(self, topic: str) -> Optional[ValueKey]:
        """Remove a binding. Returns the key it pointed to, or None if absent."""
        return self._endpoints.pop(topic, None)

    def remove_all(self) -> Dict[str, ValueKey]:
        """Clear the registry, returning the bindings that were removed."""
        removed = self._endpoints
        self._endpoints = {}
        return removed

    def lookup_by_topic(self, topic: str) -> Optional[ValueKey]:
        return self._endpoints.get(topic)

    def topics_for(self, key: ValueKey) -> List[str]:
        """All topics currently bound to a value."""
        return [topic for topic, bound in self._endpoints.items() if bound == key]

    def all(self) -> Dict[str, ValueKey]:
        """Copy of every binding."""
        return dict(self._endpoints)
