"""
Z-Wave MQTT Bridge - Main Application
FastAPI-based service exposing the bridge status and endpoint registry.
"""
import uvicorn
import os
import logging
from logging.handlers import RotatingFileHandler, QueueHandler, QueueListener
import queue
from contextlib import asynccontextmanager
from pydantic import BaseModel
from typing import Optional
from fastapi import FastAPI

# Import services
from core import ZWaveBridgeService
from device import DeviceNetwork, load_devices
from error_handler import BridgeError
from json_helpers import prepare_for_json, serialise_endpoints
from modules.value_key import ValueKey
from mqtt import MQTTService
from yaml_loader import load_config, get_conf


# ============================================================================
# CONFIGURATION
# ============================================================================

CONFIG = load_config()


# ============================================================================
# LOGGING CONFIGURATION (NON-BLOCKING)
# ============================================================================

log_file = get_conf(CONFIG, 'logging', 'file', 'logs/zwave_bridge.log')
os.makedirs(os.path.dirname(log_file) or ".", exist_ok=True)

# 1. Create a queue for logs
log_queue = queue.Queue(-1) # Unlimited size

# 2. Setup the actual handlers (File & Console)
file_handler = RotatingFileHandler(log_file, maxBytes=1024*1024, backupCount=3)
console_handler = logging.StreamHandler()

formatter = logging.Formatter('%(asctime)s - %(levelname)s - %(name)s - %(message)s')
file_handler.setFormatter(formatter)
console_handler.setFormatter(formatter)

# 3. Create the Listener (Runs in a separate thread)
log_listener = QueueListener(log_queue, file_handler, console_handler)

# 4. Configure the root logger to write to the Queue (Instant)
root_logger = logging.getLogger()
root_logger.setLevel(getattr(logging, str(get_conf(CONFIG, 'logging', 'level', 'INFO')).upper(), logging.INFO))

# Remove default handlers to avoid duplication
root_logger.handlers = []
root_logger.addHandler(QueueHandler(log_queue))

logger = logging.getLogger('main')


# ============================================================================
# PYDANTIC MODELS FOR API
# ============================================================================

class ValueKeyRequest(BaseModel):
    network_id: int
    node_id: int
    genre: str = "user"
    command_class_id: int
    instance: int = 1
    index: int
    value_type: str = "int"
    prefix: Optional[str] = None

    def to_key(self) -> ValueKey:
        return ValueKey.from_dict(self.model_dump(exclude={"prefix"}))


# ============================================================================
# SERVICES INITIALIZATION
# ============================================================================

mqtt_service = MQTTService(
    broker_host=get_conf(CONFIG, 'mqtt', 'broker_host', 'localhost'),
    port=get_conf(CONFIG, 'mqtt', 'broker_port', 1883),
    username=get_conf(CONFIG, 'mqtt', 'username'),
    password=get_conf(CONFIG, 'mqtt', 'password'),
    qos=get_conf(CONFIG, 'mqtt', 'qos', 0),
    retain=get_conf(CONFIG, 'mqtt', 'retain', True),
)

device_network = DeviceNetwork()

bridge_service = ZWaveBridgeService(
    network=device_network,
    bus=mqtt_service,
    prefix=get_conf(CONFIG, 'mqtt', 'prefix', ''),
)


# ============================================================================
# APPLICATION LIFECYCLE
# ============================================================================

@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application startup and shutdown handling."""

    # 1. Start the Threaded Log Listener
    log_listener.start()
    logger.info("Starting Z-Wave MQTT Bridge...")

    load_devices(device_network, CONFIG.get('devices', []))

    # Start MQTT (reconnects in the background if the broker is down)
    await mqtt_service.start()

    # Build endpoints and publish current state
    await bridge_service.start()

    yield  # Application runs here

    # Shutdown
    logger.info("Shutting down Z-Wave MQTT Bridge...")
    await bridge_service.stop()
    await mqtt_service.stop()

    # Stop log listener
    log_listener.stop()


# ============================================================================
# FASTAPI APPLICATION
# ============================================================================

app = FastAPI(
    title="Z-Wave MQTT Bridge",
    description="Bridges Z-Wave device values to MQTT topics",
    version="1.0.0",
    lifespan=lifespan
)


# ============================================================================
# ROUTES - STATUS
# ============================================================================

@app.get("/api/status")
async def get_status():
    """Bridge and MQTT status."""
    return {
        "mqtt": mqtt_service.get_status(),
        "bridge": bridge_service.get_status(),
    }


@app.get("/api/endpoints")
async def get_endpoints():
    """Active topic -> value bindings."""
    return serialise_endpoints(bridge_service.list_endpoints())


@app.get("/api/values")
async def get_values():
    """Every known value with its topics and current text."""
    return prepare_for_json(bridge_service.describe_values())


# ============================================================================
# ROUTES - ENDPOINT MANAGEMENT
# ============================================================================

@app.post("/api/subscribe")
async def subscribe_value(request: ValueKeyRequest):
    try:
        topics = await bridge_service.subscribe(request.to_key(), prefix=request.prefix)
        return {"success": True, "topics": topics}
    except (BridgeError, ValueError) as e:
        logger.error(f"Subscribe failed: {e}")
        return {"success": False, "error": str(e)}


@app.post("/api/unsubscribe")
async def unsubscribe_value(request: ValueKeyRequest):
    try:
        topics = await bridge_service.unsubscribe(request.to_key())
        return {"success": True, "topics": topics}
    except (BridgeError, ValueError) as e:
        logger.error(f"Unsubscribe failed: {e}")
        return {"success": False, "error": str(e)}


@app.post("/api/publish")
async def publish_value(request: ValueKeyRequest):
    try:
        results = await bridge_service.publish(request.to_key(), prefix=request.prefix)
        return {"success": all(results.values()), "results": results}
    except (BridgeError, ValueError) as e:
        logger.error(f"Publish failed: {e}")
        return {"success": False, "error": str(e)}


@app.post("/api/sync")
async def sync_endpoints():
    """Rebuild endpoints and republish all values from the device model."""
    summary = await bridge_service.sync_all()
    return {"success": summary["failures"] == 0, **summary}


# ============================================================================
# MAIN ENTRY POINT
# ============================================================================

if __name__ == "__main__":
    uvicorn.run(
        app,
        host=get_conf(CONFIG, 'web', 'host', '0.0.0.0'),
        port=get_conf(CONFIG, 'web', 'port', 8000),
        log_level="info"
    )
