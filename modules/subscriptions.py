"""
Subscription Manager
====================
Creates and tears down MQTT endpoints for writable device values.

Rules:
- Only USER genre values are bridged.
- Read-only values never get a subscription (they are published only).
- One bus subscribe per topic transition absent -> present, one bus
  unsubscribe per transition present -> absent.
- A failed subscribe leaves the registry exactly as it was.
- Re-subscribing a value whose topics moved retires the old ones, so a
  value never owns more than its current pair.
"""
import asyncio
import logging
from typing import Dict, List, Optional

from error_handler import ErrorHandler, TopicCollisionError, TransportFailure, get_error_handler
from modules.endpoint_registry import EndpointRegistry
from modules.interfaces import BusClient, MetadataProvider
from modules.topics import build_topics
from modules.value_key import ValueGenre, ValueKey

logger = logging.getLogger("subscriptions")


class SubscriptionManager:
    """
    Owns the EndpointRegistry and keeps it in step with bus subscriptions.

    All check-then-act sequences run under a single asyncio.Lock so two
    racing notifications for the same value never subscribe a topic twice.
    """

    def __init__(
        self,
        metadata: MetadataProvider,
        bus: BusClient,
        registry: Optional[EndpointRegistry] = None,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.metadata = metadata
        self.bus = bus
        self.registry = registry if registry is not None else EndpointRegistry()
        self.error_handler = error_handler or get_error_handler()
        self._lock = asyncio.Lock()

    async def _bus_call(self, operation: str, topic: str):
        """Run a bus subscribe/unsubscribe, raising TransportFailure on failure."""
        call = getattr(self.bus, operation)
        try:
            ok = await call(topic)
        except Exception as e:
            failure = TransportFailure(operation, topic, e)
            self.error_handler.record_error(failure)
            raise failure from e

        if not ok:
            failure = TransportFailure(operation, topic)
            self.error_handler.record_error(failure)
            raise failure

    def is_eligible(self, key: ValueKey) -> bool:
        """True if the value may accept inbound commands."""
        if self.metadata.genre(key) != ValueGenre.USER:
            logger.debug(f"[{key}] Skipping subscribe: genre is not user")
            return False
        if self.metadata.is_read_only(key):
            logger.debug(f"[{key}] Skipping subscribe: value is read-only")
            return False
        return True

    async def subscribe(self, prefix: str, key: ValueKey) -> List[str]:
        """
        Subscribe a value under both of its topics.

        Returns the topics that were newly subscribed (empty if the value is
        ineligible or already subscribed).

        Raises:
            TopicCollisionError: a topic is already bound to another value.
            TransportFailure: the bus refused a subscribe; nothing is kept.
                A refused unsubscribe of a stale topic leaves it registered.
            UnknownValueError: the device model does not know the value.
        """
        if not self.is_eligible(key):
            return []

        topics = build_topics(prefix, key, self.metadata)
        created: List[str] = []

        async with self._lock:
            # Validate everything before touching the bus
            pending = []
            for topic in topics:
                existing = self.registry.lookup_by_topic(topic)
                if existing is None:
                    if topic not in pending:
                        pending.append(topic)
                elif existing != key:
                    self.error_handler.record_error(TopicCollisionError(topic, existing, key))
                    raise TopicCollisionError(topic, existing, key)

            # Topics from an older layout (instance segment added or dropped)
            stale = [t for t in self.registry.topics_for(key) if t not in topics]
            for topic in stale:
                await self._bus_call("unsubscribe", topic)
                self.registry.remove(topic)
            if stale:
                logger.info(f"[{key}] Retired stale topics: {', '.join(stale)}")

            try:
                for topic in pending:
                    await self._bus_call("subscribe", topic)
                    self.registry.insert(topic, key)
                    created.append(topic)
            except TransportFailure:
                await self._rollback(created)
                raise

        if created:
            logger.info(f"[{key}] Subscribed: {', '.join(created)}")
        return created

    async def _rollback(self, topics: List[str]):
        """Undo topics bound earlier in a failed subscribe call."""
        for topic in topics:
            self.registry.remove(topic)
            try:
                await self._bus_call("unsubscribe", topic)
            except TransportFailure as e:
                logger.warning(f"Rollback of '{topic}' could not unsubscribe: {e}")

    async def unsubscribe(self, key: ValueKey) -> List[str]:
        """
        Remove every endpoint bound to a value.

        Returns the topics that were removed. Raises TransportFailure on the
        first topic the bus refuses; that topic stays registered.
        """
        removed: List[str] = []
        async with self._lock:
            for topic in self.registry.topics_for(key):
                await self._bus_call("unsubscribe", topic)
                self.registry.remove(topic)
                removed.append(topic)

        if removed:
            logger.info(f"[{key}] Unsubscribed: {', '.join(removed)}")
        return removed

    async def unsubscribe_topic(self, topic: str) -> bool:
        """Remove a single endpoint. Returns False if the topic was not bound."""
        async with self._lock:
            if topic not in self.registry:
                return False
            await self._bus_call("unsubscribe", topic)
            self.registry.remove(topic)

        logger.info(f"Unsubscribed: {topic}")
        return True

    async def unsubscribe_all(self) -> List[str]:
        """
        Tear down every endpoint and clear the registry.

        Every registered topic gets one bus unsubscribe attempt. Returns the
        topics whose unsubscribe failed; they are dropped from the registry
        all the same.
        """
        failed: List[str] = []
        async with self._lock:
            endpoints = self.registry.remove_all()
            for topic in endpoints:
                try:
                    await self._bus_call("unsubscribe", topic)
                except TransportFailure as e:
                    logger.warning(f"Teardown: {e}")
                    failed.append(topic)

        logger.info(f"Removed {len(endpoints)} endpoints ({len(failed)} unsubscribe failures)")
        return failed

    def lookup(self, topic: str) -> Optional[ValueKey]:
        return self.registry.lookup_by_topic(topic)

    def list_endpoints(self) -> Dict[str, ValueKey]:
        return self.registry.all()
