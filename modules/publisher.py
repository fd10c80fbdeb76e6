"""
Value Publisher
Publishes the current text of a device value under both of its topics.

Publishing does not depend on subscriptions: read-only values are still
published so observers can follow their state.
"""
import logging
from typing import Dict, Optional

from error_handler import ErrorHandler, TransportFailure, get_error_handler
from modules.interfaces import BusClient, MetadataProvider
from modules.topics import build_topics
from modules.value_key import ValueKey

logger = logging.getLogger("publisher")


class Publisher:
    """Sends value state to the bus."""

    def __init__(
        self,
        metadata: MetadataProvider,
        bus: BusClient,
        error_handler: Optional[ErrorHandler] = None,
    ):
        self.metadata = metadata
        self.bus = bus
        self.error_handler = error_handler or get_error_handler()

    async def publish(self, prefix: str, key: ValueKey) -> Dict[str, bool]:
        """
        Publish a value on its name-based and id-based topics.

        Both publishes are always attempted. Returns topic -> success.
        UnknownValueError from the device model propagates.
        """
        topics = build_topics(prefix, key, self.metadata)
        payload = self.metadata.value_as_text(key)

        results: Dict[str, bool] = {}
        for topic in topics:
            try:
                ok = bool(await self.bus.publish(topic, payload))
            except Exception as e:
                self.error_handler.record_error(TransportFailure("publish", topic, e))
                logger.error(f"[{key}] Publish to '{topic}' failed: {e}")
                ok = False
            else:
                if not ok:
                    self.error_handler.record_error(TransportFailure("publish", topic))
                    logger.warning(f"[{key}] Publish to '{topic}' was not accepted")

            results[topic] = ok

        logger.debug(f"[{key}] PUB {payload!r} -> {list(results)}")
        return results
