"""MQTT handler for publishing meter readings."""

import json
import logging

import paho.mqtt.client as mqtt

from .config import MqttConfig
from .telegram import Reading

logger = logging.getLogger(__name__)

# Reconnection settings
RECONNECT_DELAY_MIN = 1  # seconds
RECONNECT_DELAY_MAX = 120  # seconds


class MqttHandler:
    """Publishes readings to the MQTT broker."""

    def __init__(self, config: MqttConfig) -> None:
        self._config = config
        self._connected = False

        self._client = mqtt.Client(
            mqtt.CallbackAPIVersion.VERSION2, client_id=config.client_id
        )
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

    def connect(self) -> None:
        """Connect to MQTT broker and start network loop."""
        logger.info(
            "Connecting to MQTT broker %s:%d",
            self._config.broker,
            self._config.port,
        )
        self._client.connect(self._config.broker, self._config.port)
        self._client.loop_start()

    def disconnect(self) -> None:
        """Stop network loop and disconnect from broker."""
        self._client.loop_stop()
        self._client.disconnect()
        logger.info("Disconnected from MQTT broker")

    def publish_reading(self, reading: Reading) -> bool:
        """Publish a reading as JSON. Returns True if the message was queued."""
        if not self._connected:
            logger.debug("Cannot publish: not connected to MQTT broker")
            return False

        payload = json.dumps(reading.as_dict())
        info = self._client.publish(
            self._config.topic, payload, retain=self._config.retain
        )
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            logger.warning(
                "Failed to publish reading to %s: %s",
                self._config.topic,
                mqtt.error_string(info.rc),
            )
            return False

        logger.debug("Published reading to %s: %s", self._config.topic, payload)
        return True

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
            logger.info("Connected to MQTT broker")
        else:
            self._connected = False
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
        if reason_code == 0:
            logger.info("Disconnected from MQTT broker (clean)")
        else:
            logger.warning(
                "Disconnected from MQTT broker: %s (will reconnect)",
                reason_code,
            )
