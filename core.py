"""
Z-Wave Bridge Service Core
Keeps the device model and MQTT consistent: writable values are subscribed,
value changes are published under both topic names, and inbound messages
are routed back to the device model through the endpoint registry.
"""
import asyncio
import logging
from typing import Any, Dict, List, Optional, Set

from device import DeviceNetwork
from error_handler import BridgeError, ErrorHandler, TransportFailure, get_error_handler
from modules.endpoint_registry import EndpointRegistry
from modules.interfaces import BusClient
from modules.publisher import Publisher
from modules.subscriptions import SubscriptionManager
from modules.topics import build_topics
from modules.value_key import ValueGenre, ValueKey

logger = logging.getLogger("core")


class ZWaveBridgeService:
    """
    Bridge between a DeviceNetwork and an MQTT bus client.
    Implements the device model's listener interface.
    """

    def __init__(self, network: DeviceNetwork, bus: BusClient, prefix: str = "",
                 error_handler: Optional[ErrorHandler] = None):
        self.network = network
        self.bus = bus
        self.prefix = prefix or ""
        self.error_handler = error_handler or get_error_handler()

        self.registry = EndpointRegistry()
        self.subscriptions = SubscriptionManager(network, bus, self.registry, self.error_handler)
        self.publisher = Publisher(network, bus, self.error_handler)

        # Notification tasks kept alive until they finish
        self._tasks: Set[asyncio.Task] = set()
        self._started = False

        # Connect MQTT callbacks
        if hasattr(bus, "message_callback"):
            bus.message_callback = self.handle_mqtt_message
        if hasattr(bus, "status_change_callback"):
            bus.status_change_callback = self.handle_bridge_status_change

    def _resolve_prefix(self, prefix: Optional[str]) -> str:
        return self.prefix if prefix is None else prefix

    # =========================================================================
    # LIFECYCLE
    # =========================================================================

    async def start(self):
        """Attach to the device model and build all endpoints."""
        self.network.add_listener(self)
        self._started = True
        await self.sync_all()

    async def stop(self):
        """Detach from the device model and remove every endpoint."""
        self._started = False
        self.network.remove_listener(self)

        if self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

        failed = await self.unsubscribe_all()
        if failed:
            logger.warning(f"{len(failed)} topics could not be unsubscribed during shutdown")

    async def sync_all(self) -> Dict[str, int]:
        """
        Rebuild endpoints and republish every user value from the live model.
        Failures are logged per value and do not stop the sync.
        """
        subscribed = 0
        published = 0
        failures = 0

        for key in self.network.values():
            if key.genre != ValueGenre.USER:
                continue
            try:
                subscribed += len(await self.subscribe(key))
                results = await self.publish(key)
                published += sum(1 for ok in results.values() if ok)
            except BridgeError as e:
                failures += 1
                logger.error(f"[{key}] Sync failed: {e}")

        logger.info(
            f"Sync complete: {subscribed} new subscriptions, {published} publications, "
            f"{failures} failures, {len(self.registry)} endpoints"
        )
        return {"subscribed": subscribed, "published": published, "failures": failures}

    async def handle_bridge_status_change(self, status: str):
        """Rebuild the bus side after the MQTT connection comes back."""
        logger.info(f"🌉 Bridge status changed: {status}")
        if status == "online" and self._started:
            await self.sync_all()

    # =========================================================================
    # PUBLIC OPERATIONS
    # =========================================================================

    async def subscribe(self, key: ValueKey, prefix: Optional[str] = None) -> List[str]:
        return await self.subscriptions.subscribe(self._resolve_prefix(prefix), key)

    async def unsubscribe(self, key: ValueKey) -> List[str]:
        return await self.subscriptions.unsubscribe(key)

    async def unsubscribe_all(self) -> List[str]:
        return await self.subscriptions.unsubscribe_all()

    async def publish(self, key: ValueKey, prefix: Optional[str] = None) -> Dict[str, bool]:
        return await self.publisher.publish(self._resolve_prefix(prefix), key)

    def list_endpoints(self) -> Dict[str, ValueKey]:
        return self.subscriptions.list_endpoints()

    def describe_values(self) -> List[Dict[str, Any]]:
        """Every known value with its topics, text and subscription state."""
        endpoints = self.list_endpoints()
        described = []
        for key in self.network.values():
            name_topic, id_topic = build_topics(self.prefix, key, self.network)
            described.append({
                "key": key.to_dict(),
                "label": self.network.value_label(key),
                "value": self.network.value_as_text(key),
                "read_only": self.network.is_read_only(key),
                "name_topic": name_topic,
                "id_topic": id_topic,
                "subscribed": name_topic in endpoints or id_topic in endpoints,
            })
        return described

    # =========================================================================
    # MQTT COMMAND HANDLER
    # =========================================================================

    async def handle_mqtt_message(self, topic: str, payload: str) -> bool:
        """
        Route an inbound message to the value bound to its topic.
        Returns True if the device model was written.
        """
        key = self.subscriptions.lookup(topic)
        if key is None:
            logger.debug(f"MQTT message on unbound topic {topic}")
            return False

        try:
            # Our own (retained) publications come back on subscribed topics
            if payload == self.network.value_as_text(key):
                logger.debug(f"[{key}] Ignoring echo on {topic}")
                return False

            written = self.network.set_value_from_text(key, payload)
        except ValueError as e:
            logger.warning(f"[{key}] Invalid payload {payload!r} on {topic}: {e}")
            return False
        except BridgeError as e:
            logger.error(f"[{key}] MQTT command error: {e}")
            return False

        if written:
            logger.info(f"[{key}] 📥 {topic} = {payload}")
        return written

    # =========================================================================
    # DEVICE MODEL LISTENER INTERFACE
    # =========================================================================

    def _schedule(self, coro):
        task = asyncio.get_running_loop().create_task(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def value_added(self, key: ValueKey):
        """Called by the device model when a value appears."""
        self._schedule(self._async_value_added(key))

    def value_changed(self, key: ValueKey):
        """Called by the device model when a value changes."""
        self._schedule(self._async_value_changed(key))

    def value_removed(self, key: ValueKey):
        """Called by the device model before a value is dropped."""
        self._schedule(self._async_value_removed(key))

    def node_removed(self, network_id: int, node_id: int, keys: List[ValueKey]):
        """Called by the device model before a node is dropped."""
        for key in keys:
            self._schedule(self._async_value_removed(key))

    async def _async_value_added(self, key: ValueKey):
        if key.genre != ValueGenre.USER:
            return
        try:
            await self.subscribe(key)
            await self.publish(key)
        except BridgeError as e:
            logger.error(f"[{key}] Failed to bridge new value: {e}")
        # A second instance adds the instance segment to every sibling topic
        await self._refresh_siblings(key, 2)

    async def _async_value_changed(self, key: ValueKey):
        if key.genre != ValueGenre.USER:
            return
        try:
            await self.publish(key)
        except BridgeError as e:
            logger.error(f"[{key}] Failed to publish change: {e}")

    async def _async_value_removed(self, key: ValueKey):
        try:
            await self.unsubscribe(key)
        except TransportFailure as e:
            logger.error(f"[{key}] Failed to remove endpoints: {e}")
        # Back to a single instance: siblings drop the instance segment
        await self._refresh_siblings(key, 1)

    async def _refresh_siblings(self, key: ValueKey, instance_count: int):
        """
        Re-bridge the other values of key's command class when the node now
        carries exactly instance_count instances of it, i.e. when their topic
        layout has just moved.
        """
        siblings = [
            other for other in self.network.values()
            if other != key
            and other.genre == ValueGenre.USER
            and (other.network_id, other.node_id, other.command_class_id)
            == (key.network_id, key.node_id, key.command_class_id)
        ]
        if not siblings:
            return
        if self.network.instance_count(key.network_id, key.node_id, key.command_class_id) != instance_count:
            return

        for other in siblings:
            try:
                if self.registry.topics_for(other):
                    await self.subscribe(other)
                await self.publish(other)
            except BridgeError as e:
                logger.error(f"[{other}] Failed to move to new topics: {e}")

    async def wait_idle(self):
        """Wait for pending device notifications to be processed."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    # =========================================================================
    # STATUS
    # =========================================================================

    def get_status(self) -> Dict[str, Any]:
        return {
            "prefix": self.prefix,
            "nodes": len(self.network.nodes),
            "values": len(self.network.values()),
            "endpoints": len(self.registry),
            "pending_tasks": len(self._tasks),
            "errors": self.error_handler.get_stats(),
        }
