"""
Bridge Error Handling
=====================
Error types raised by the Z-Wave/MQTT bridge and a small statistics
tracker used for status reporting.

The bridge never retries on its own: transport failures are surfaced to
the caller and retry/backoff belongs to the MQTT transport.
"""
import asyncio
import logging
from typing import Any, Dict, Optional

from aiomqtt import MqttError

logger = logging.getLogger("error_handler")


class BridgeError(Exception):
    """Base class for bridge errors."""
    pass


class TransportFailure(BridgeError):
    """Raised when an MQTT subscribe/unsubscribe/publish call fails."""

    def __init__(self, operation: str, topic: str, cause: Optional[Exception] = None):
        self.operation = operation
        self.topic = topic
        self.cause = cause
        msg = f"MQTT {operation} failed for '{topic}'"
        if cause is not None:
            msg += f": {cause}"
        super().__init__(msg)


class UnknownValueError(BridgeError):
    """Raised when the device model cannot resolve a value key."""

    def __init__(self, key: Any, detail: Optional[str] = None):
        self.key = key
        super().__init__(f"Unknown value {key}" + (f" ({detail})" if detail else ""))


class TopicCollisionError(BridgeError):
    """Raised when two distinct values derive the same topic."""

    def __init__(self, topic: str, existing: Any, incoming: Any):
        self.topic = topic
        self.existing = existing
        self.incoming = incoming
        super().__init__(
            f"Topic '{topic}' is already bound to {existing}, refusing to rebind to {incoming}"
        )


class ErrorHandler:
    """
    Centralized error bookkeeping for bridge operations.

    Features:
    - Error classification (transient vs permanent)
    - Statistics tracking
    """

    # Transport errors worth a reconnect
    TRANSIENT_ERRORS = {
        'CONNECTION LOST',
        'NOT CONNECTED',
        'TIMED OUT',
        'BROKEN PIPE',
    }

    def __init__(self):
        self.stats = {
            'total_failures': 0,
            'errors_by_type': {},
        }

    def is_transient(self, error: Exception) -> bool:
        """
        Determine if an error is transient (connection-level).

        Args:
            error: The exception

        Returns:
            True if error is transient
        """
        if isinstance(error, TransportFailure) and error.cause is not None:
            return self.is_transient(error.cause)

        if isinstance(error, (asyncio.TimeoutError, ConnectionError)):
            return True

        error_str = str(error).upper()
        for pattern in self.TRANSIENT_ERRORS:
            if pattern in error_str:
                return True

        # Any other client-level failure usually means the session is gone
        if isinstance(error, MqttError):
            return True

        return False

    def record_error(self, error: Exception):
        """Record error in statistics."""
        self.stats['total_failures'] += 1
        error_type = type(error).__name__
        self.stats['errors_by_type'][error_type] = \
            self.stats['errors_by_type'].get(error_type, 0) + 1

    def get_stats(self) -> Dict[str, Any]:
        """Get error handler statistics."""
        return {
            'total_failures': self.stats['total_failures'],
            'errors_by_type': dict(self.stats['errors_by_type']),
        }


# Global error handler instance
_global_error_handler = ErrorHandler()


def get_error_handler() -> ErrorHandler:
    """Get the global error handler."""
    return _global_error_handler
