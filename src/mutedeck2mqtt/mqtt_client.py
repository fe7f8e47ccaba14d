"""MQTT client for publishing MuteDeck state and discovery bundles.

A single long-lived paho-mqtt connection is shared by every request worker
and by the Home Assistant status subscription. Publishes are QoS 0, never
retained, and block the calling thread until paho has written them out.

Subscription callbacks run on a single dispatch thread, never on the paho
network thread, so a callback may itself publish and wait.
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
import logging
import threading
from typing import Any, Callable, Optional

import paho.mqtt.client as mqtt

from .config import Config
from .discovery import encode_payload
from .errors import BrokerConnectionError, PublishError

logger = logging.getLogger(__name__)

MessageCallback = Callable[[bytes], None]


class MQTTBridgeClient:
    """Thin wrapper around a paho client with blocking, checked publishes."""

    def __init__(
        self,
        host: str,
        port: int = 1883,
        client_id: str = "mutedeck2mqtt",
        username: Optional[str] = None,
        password: Optional[str] = None,
        keepalive: int = 60,
        connect_timeout: float = 10.0,
        publish_timeout: Optional[float] = None,
        client: Optional[Any] = None,
    ):
        self.host = host
        self.port = port
        self.keepalive = keepalive
        self.connect_timeout = connect_timeout
        self.publish_timeout = publish_timeout
        self._subscriptions: dict[str, MessageCallback] = {}
        self._connected = threading.Event()
        self._connack_received = threading.Event()
        self._connack: Optional[Any] = None
        self._dispatcher = ThreadPoolExecutor(
            max_workers=1, thread_name_prefix="mqtt-dispatch"
        )

        if client is None:
            client = mqtt.Client(
                callback_api_version=mqtt.CallbackAPIVersion.VERSION2,
                client_id=client_id,
            )
        self._client = client
        if username and password:
            self._client.username_pw_set(username, password)
        self._client.on_connect = self._on_connect
        self._client.on_disconnect = self._on_disconnect
        self._client.on_message = self._on_message

    @classmethod
    def from_config(cls, config: Config) -> "MQTTBridgeClient":
        return cls(
            host=str(config.mqtt_host),
            port=config.mqtt_port,
            client_id=config.mqtt_client_id,
            username=config.mqtt_username,
            password=config.mqtt_password,
            keepalive=config.mqtt_keepalive,
            connect_timeout=config.mqtt_connect_timeout,
            publish_timeout=config.mqtt_publish_timeout,
        )

    @property
    def is_connected(self) -> bool:
        return self._connected.is_set()

    def add_subscription(self, topic: str, callback: MessageCallback) -> None:
        """Register ``callback`` for payloads on ``topic``.

        Subscriptions are (re)issued from the connect callback, so they
        survive broker reconnects.
        """
        self._subscriptions[topic] = callback
        if self.is_connected:
            self._client.subscribe(topic, 0)

    def connect(self) -> None:
        """Connect and start the network loop; block until the broker answers."""
        logger.info("Using MQTT server: %s:%s", self.host, self.port)
        try:
            self._client.connect(self.host, self.port, keepalive=self.keepalive)
        except OSError as e:
            raise BrokerConnectionError(
                f"cannot connect to MQTT broker {self.host}:{self.port}: {e}"
            ) from e
        self._client.loop_start()

        if not self._connack_received.wait(self.connect_timeout):
            self._client.loop_stop()
            raise BrokerConnectionError(
                f"MQTT broker {self.host}:{self.port} did not answer within "
                f"{self.connect_timeout}s"
            )
        if not self.is_connected:
            self._client.loop_stop()
            raise BrokerConnectionError(
                f"MQTT broker {self.host}:{self.port} refused connection: {self._connack}"
            )

    def disconnect(self) -> None:
        try:
            self._client.disconnect()
        finally:
            self._client.loop_stop()
            self._connected.clear()
            self._dispatcher.shutdown(wait=False)

    def _on_connect(self, client, userdata, flags, reason_code, properties=None):
        self._connack = reason_code
        if reason_code.is_failure:
            logger.error("MQTT connect failed rc=%s", reason_code)
            self._connack_received.set()
            return
        logger.info("MQTT connected rc=%s", reason_code)
        for topic in self._subscriptions:
            client.subscribe(topic, 0)
            logger.debug("Subscribed to %s", topic)
        self._connected.set()
        self._connack_received.set()

    def _on_disconnect(
        self, client, userdata, disconnect_flags, reason_code, properties=None
    ):
        self._connected.clear()
        logger.warning("MQTT disconnected rc=%s", reason_code)

    def _on_message(self, client, userdata, msg):
        self._dispatcher.submit(self._dispatch, msg.topic, msg.payload)

    def _dispatch(self, topic: str, payload: bytes) -> None:
        callback = self._subscriptions.get(topic)
        if callback is None:
            logger.debug("Ignoring message on unexpected topic %s", topic)
            return
        try:
            callback(payload)
        except Exception:
            logger.exception("Handler for %s failed", topic)

    def publish_json(
        self, topic: str, payload: Any, sort_keys: bool = False
    ) -> str:
        """Publish ``payload`` as compact JSON and wait for it to be written.

        Returns the encoded body. Raises PublishError on any failure.
        """
        body = encode_payload(payload, sort_keys=sort_keys)
        info = self._client.publish(topic, body, qos=0, retain=False)
        if info.rc != mqtt.MQTT_ERR_SUCCESS:
            raise PublishError(topic, mqtt.error_string(info.rc))
        try:
            info.wait_for_publish(self.publish_timeout)
        except (RuntimeError, ValueError) as e:
            raise PublishError(topic, e) from e
        if not info.is_published():
            raise PublishError(topic, "timed out waiting for publish")
        return body

    def publish_discovery(self, key: str, document: dict[str, Any]) -> str:
        """Publish a discovery bundle (not retained)."""
        return self.publish_json(key, document)

    def publish_status(self, channel: str, record: dict[str, Any]) -> str:
        """Publish a status record with sorted keys."""
        return self.publish_json(channel, record, sort_keys=True)
