"""
MQTT Client Wrapper for the Z-Wave Bridge
Handles connection, reconnection, subscriptions, publishing and inbound
message delivery. Implements the BusClient interface used by the core.
"""
import asyncio
import logging
from typing import Optional, Callable, Dict, Any, Set
from contextlib import suppress

from aiomqtt import Client, MqttError

from error_handler import get_error_handler

logger = logging.getLogger("mqtt")


class MQTTService:
    """
    MQTT Service with reconnection and inbound message routing.
    Every call reports success as True/False; failures are logged here and
    surfaced by the caller.
    """

    def __init__(
        self,
        broker_host: str,
        port: int = 1883,
        username: Optional[str] = None,
        password: Optional[str] = None,
        qos: int = 0,
        retain: bool = True,
        message_callback: Optional[Callable] = None,
    ):
        self.broker = broker_host
        self.port = port
        self.username = username
        self.password = password
        self.default_qos = qos
        self.retain = retain

        # Called with (topic, payload) for every inbound message
        self.message_callback = message_callback

        # Called with "online"/"offline" when the connection state changes
        self.status_change_callback: Optional[Callable] = None

        # Client management
        self.client: Optional[Client] = None
        self._connected = False
        self._reconnect_task: Optional[asyncio.Task] = None
        self._message_handler_task: Optional[asyncio.Task] = None
        self._shutdown = False

        # Reconnection settings
        self._reconnect_interval = 5  # Start with 5 seconds
        self._max_reconnect_interval = 300  # Max 5 minutes
        self._reconnect_attempts = 0

        # Topic subscriptions, restored after a reconnect
        self._subscribed_topics: Set[str] = set()

        self.error_handler = get_error_handler()

    @property
    def connected(self) -> bool:
        return self._connected and self.client is not None

    async def start(self):
        """Start MQTT service with automatic reconnection."""
        self._shutdown = False
        await self._connect()

    async def _connect(self):
        """Establish connection to MQTT broker."""
        try:
            logger.info(f"Connecting to MQTT broker at {self.broker}:{self.port}...")

            self.client = Client(
                hostname=self.broker,
                port=self.port,
                username=self.username,
                password=self.password,
                keepalive=60
            )

            await self.client.__aenter__()
            self._connected = True
            self._reconnect_attempts = 0
            self._reconnect_interval = 5  # Reset backoff

            logger.info(f"✓ Connected to MQTT Broker at {self.broker}:{self.port}")

            await self._restore_subscriptions()

            # Start message handler
            self._message_handler_task = asyncio.create_task(self._handle_messages())

            if self.status_change_callback:
                try:
                    await self.status_change_callback("online")
                except Exception as e:
                    logger.error(f"Status callback error: {e}")

        except MqttError as e:
            self._connected = False
            self.error_handler.record_error(e)
            logger.error(f"MQTT connection failed: {e}")

            # Schedule reconnection
            if not self._shutdown:
                self._schedule_reconnect()

    def _schedule_reconnect(self):
        """Schedule a reconnection attempt with exponential backoff."""
        if self._shutdown:
            return

        self._reconnect_attempts += 1
        # Exponential backoff: 5, 10, 20, 40, 80, 160, 300 (max)
        self._reconnect_interval = min(
            self._reconnect_interval * 2,
            self._max_reconnect_interval
        )

        logger.warning(
            f"Scheduling MQTT reconnection attempt {self._reconnect_attempts} "
            f"in {self._reconnect_interval}s"
        )

        if self._reconnect_task and not self._reconnect_task.done():
            self._reconnect_task.cancel()

        self._reconnect_task = asyncio.create_task(self._reconnect_loop())

    async def _reconnect_loop(self):
        """Reconnection loop with backoff."""
        while not self._shutdown and not self._connected:
            await asyncio.sleep(self._reconnect_interval)

            if self._shutdown:
                break

            logger.info(f"Attempting MQTT reconnection (attempt {self._reconnect_attempts})...")
            await self._connect()

            if self._connected:
                logger.info("✓ MQTT reconnection successful")
                break

    def _connection_lost(self, error: Exception):
        """Mark the session dead and start reconnecting."""
        if not self._connected:
            return
        self._connected = False
        logger.error(f"MQTT connection lost: {error}")

        if self.status_change_callback:
            asyncio.create_task(self.status_change_callback("offline"))

        if not self._shutdown:
            self._schedule_reconnect()

    async def _restore_subscriptions(self):
        """Re-subscribe everything we were subscribed to before a reconnect."""
        if not self._subscribed_topics:
            return

        for topic in sorted(self._subscribed_topics):
            try:
                await self.client.subscribe(topic, qos=self.default_qos)
            except MqttError as e:
                logger.error(f"Failed to restore subscription {topic}: {e}")

        logger.info(f"✓ Restored {len(self._subscribed_topics)} subscriptions")

    async def _handle_messages(self):
        """Handle incoming MQTT messages."""
        if not self.client:
            return

        try:
            async for message in self.client.messages:
                try:
                    topic = str(message.topic)
                    payload = message.payload.decode('utf-8') if message.payload else ""

                    logger.debug(f"MQTT RX: {topic} = {payload}")

                    if self.message_callback:
                        await self.message_callback(topic, payload)

                except UnicodeDecodeError:
                    logger.warning(f"Dropping non UTF-8 payload on {message.topic}")
                except Exception as e:
                    logger.error(f"Error processing MQTT message: {e}", exc_info=True)

        except asyncio.CancelledError:
            logger.debug("Message handler cancelled")
        except MqttError as e:
            self.error_handler.record_error(e)
            self._connection_lost(e)

    async def stop(self):
        """Stop MQTT service gracefully."""
        logger.info("Stopping MQTT service...")
        self._shutdown = True
        self._connected = False

        # Cancel reconnection task
        if self._reconnect_task:
            self._reconnect_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._reconnect_task

        # Cancel message handler
        if self._message_handler_task:
            self._message_handler_task.cancel()
            with suppress(asyncio.CancelledError):
                await self._message_handler_task

        # Disconnect client
        if self.client:
            try:
                await self.client.__aexit__(None, None, None)
            except MqttError as e:
                logger.debug(f"Error during MQTT disconnect: {e}")

        self.client = None
        self._subscribed_topics.clear()
        logger.info("MQTT service stopped")

    # =========================================================================
    # BUS CLIENT INTERFACE
    # =========================================================================

    async def subscribe(self, topic: str) -> bool:
        """Subscribe to a single topic."""
        if not self.connected:
            logger.debug(f"Cannot subscribe, not connected. Topic: {topic}")
            return False

        try:
            await self.client.subscribe(topic, qos=self.default_qos)
        except MqttError as e:
            logger.error(f"Subscribe to {topic} failed: {e}")
            if self.error_handler.is_transient(e):
                self._connection_lost(e)
            return False

        self._subscribed_topics.add(topic)
        logger.debug(f"SUB [{topic}] (QoS {self.default_qos})")
        return True

    async def unsubscribe(self, topic: str) -> bool:
        """
        Unsubscribe from a single topic.

        The topic stays tracked (and is restored on reconnect) until the
        broker has accepted the unsubscribe.
        """
        if not self.connected:
            logger.debug(f"Cannot unsubscribe, not connected. Topic: {topic}")
            return False

        try:
            await self.client.unsubscribe(topic)
        except MqttError as e:
            logger.error(f"Unsubscribe from {topic} failed: {e}")
            if self.error_handler.is_transient(e):
                self._connection_lost(e)
            return False

        self._subscribed_topics.discard(topic)
        logger.debug(f"UNSUB [{topic}]")
        return True

    async def publish(self, topic: str, payload: str, qos: Optional[int] = None,
                      retain: Optional[bool] = None) -> bool:
        """Publish a message to a full topic."""
        if not self.connected:
            logger.debug(f"Cannot publish, not connected. Topic: {topic}")
            return False

        if qos is None:
            qos = self.default_qos
        if retain is None:
            retain = self.retain

        try:
            await self.client.publish(topic, payload, retain=retain, qos=qos)
            logger.debug(f"PUB [{topic}] (QoS {qos}): {payload[:100]}")
            return True

        except MqttError as e:
            logger.error(f"Publish to {topic} failed: {e}")
            if self.error_handler.is_transient(e):
                self._connection_lost(e)
            return False

    def get_status(self) -> Dict[str, Any]:
        """Get MQTT connection status."""
        return {
            "connected": self._connected,
            "broker": f"{self.broker}:{self.port}",
            "reconnect_attempts": self._reconnect_attempts,
            "subscribed_topics": sorted(self._subscribed_topics)
        }
