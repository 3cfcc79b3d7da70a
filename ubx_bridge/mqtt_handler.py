"""MQTT publisher for decoded UBX packets."""

import base64
import logging
import threading
import time

import paho.mqtt.client as mqtt

from .config import MqttConfig
from .decoder import Packet
from .messages import message_name

logger = logging.getLogger(__name__)

# Reconnection settings
RECONNECT_DELAY_MIN = 1  # seconds
RECONNECT_DELAY_MAX = 120  # seconds


class MqttHandler:
    """Publishes decoded packets to an MQTT broker."""

    def __init__(self, config: MqttConfig, client_id: str = "ubx-bridge") -> None:
        self._config = config
        self._connected = False
        self._connected_event = threading.Event()
        self._pending: list[mqtt.MQTTMessageInfo] = []

        self._client = mqtt.Client(mqtt.CallbackAPIVersion.VERSION2, client_id=client_id)
        self._client.on_connect = self._handle_connect
        self._client.on_disconnect = self._handle_disconnect

        # Enable automatic reconnection with exponential backoff
        self._client.reconnect_delay_set(RECONNECT_DELAY_MIN, RECONNECT_DELAY_MAX)

        if config.username:
            self._client.username_pw_set(config.username, config.password)

    @property
    def connected(self) -> bool:
        """Return True if currently connected to broker."""
        return self._connected

    def topic_for(self, packet: Packet) -> str:
        """Topic a packet is published to, e.g. ubx/NAV-PVT."""
        return f"{self._config.root_topic}/{message_name(packet.message_class, packet.message_id)}"

    def connect(self) -> None:
        """Connect to MQTT broker and start network loop."""
        logger.info(
            "Connecting to MQTT broker %s:%d",
            self._config.broker,
            self._config.port,
        )
        self._client.connect(self._config.broker, self._config.port)
        self._client.loop_start()

    def wait_connected(self, timeout: float | None = None) -> bool:
        """Block until the broker has accepted the connection.

        Returns False if the timeout expired first.
        """
        return self._connected_event.wait(timeout)

    def wait_for_publish(self, timeout: float | None = None) -> int:
        """Wait for queued publishes to be sent, return how many were not."""
        deadline = None if timeout is None else time.monotonic() + timeout
        unsent = 0
        for info in self._pending:
            remaining = None if deadline is None else max(deadline - time.monotonic(), 0)
            try:
                info.wait_for_publish(remaining)
            except (ValueError, RuntimeError) as e:
                logger.warning("Publish of message %d failed: %s", info.mid, e)
            if not info.is_published():
                unsent += 1
        self._pending.clear()
        return unsent

    def disconnect(self) -> None:
        """Stop network loop and disconnect from broker."""
        self._client.loop_stop()
        self._client.disconnect()
        logger.info("Disconnected from MQTT broker")

    def publish_packet(self, packet: Packet) -> None:
        """Publish a decoded packet's payload, base64 encoded."""
        if not self._connected:
            logger.debug("Cannot publish: not connected to MQTT broker")
            return

        topic = self.topic_for(packet)
        encoded = base64.b64encode(packet.payload).decode("ascii")
        info = self._client.publish(topic, encoded)
        self._pending = [i for i in self._pending if not i.is_published()]
        self._pending.append(info)
        logger.debug("Published packet to %s: %d bytes", topic, len(packet.payload))

    def _handle_connect(
        self,
        client: mqtt.Client,
        userdata: object,
        flags: mqtt.ConnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: mqtt.Properties | None,
    ) -> None:
        if reason_code == 0:
            self._connected = True
            self._connected_event.set()
            logger.info("Connected to MQTT broker")
        else:
            self._connected = False
            self._connected_event.clear()
            logger.error("MQTT connection failed: %s", reason_code)

    def _handle_disconnect(
        self,
        client: mqtt.Client,
        userdata: object,
        disconnect_flags: mqtt.DisconnectFlags,
        reason_code: mqtt.ReasonCode,
        properties: mqtt.Properties | None,
    ) -> None:
        self._connected = False
        self._connected_event.clear()
        if reason_code == 0:
            logger.info("Disconnected from MQTT broker (clean)")
        else:
            logger.warning(
                "Disconnected from MQTT broker: %s (will reconnect)",
                reason_code,
            )
