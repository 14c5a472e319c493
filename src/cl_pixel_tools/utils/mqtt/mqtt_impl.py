"""MQTT broadcasting of queue events.

Every job event is published as JSON to ``<prefix>/<job_id>``, idle
transitions to ``<prefix>/idle``. When a status topic is configured the
broadcaster keeps a retained ``online``/``offline`` marker there, with the
broker's last will covering crashes.
"""

import threading
from typing import NamedTuple, Protocol, override
from urllib.parse import urlparse

import paho.mqtt.client as mqtt
from loguru import logger
from paho.mqtt.client import ConnectFlags, DisconnectFlags
from paho.mqtt.enums import CallbackAPIVersion
from paho.mqtt.properties import Properties
from paho.mqtt.reasoncodes import ReasonCode

from ...common.schema_event import QueueEvent, QueueIdle

DEFAULT_MQTT_PORT = 1883
CONNECT_TIMEOUT_SECONDS = 5.0
STATUS_ONLINE = "online"
STATUS_OFFLINE = "offline"


class InvalidMQTTURLException(ValueError):
    """Raised when a broker URL cannot be parsed."""


class UnsupportedMQTTURLException(ValueError):
    """Raised when a broker URL uses a scheme other than mqtt://."""


class BrokerAddress(NamedTuple):
    host: str
    port: int


def parse_mqtt_url(url: str) -> BrokerAddress:
    """Split ``mqtt://host[:port]`` into host and port."""
    parsed = urlparse(url)
    if parsed.scheme != "mqtt":
        raise UnsupportedMQTTURLException(f"Unsupported MQTT URL scheme: {url}")
    if not parsed.hostname:
        raise InvalidMQTTURLException(f"MQTT URL has no host: {url}")
    try:
        port = parsed.port or DEFAULT_MQTT_PORT
    except ValueError as exc:
        raise InvalidMQTTURLException(f"Invalid MQTT port in {url}") from exc
    return BrokerAddress(parsed.hostname, port)


class BroadcasterBase(Protocol):
    connected: bool

    def connect(self) -> bool: ...

    def disconnect(self) -> None: ...

    def publish(self, topic: str, payload: str, *, retain: bool = False) -> bool: ...


class MQTTBroadcaster(BroadcasterBase):
    """Publishes to one broker over MQTT v5 from paho's network thread."""

    def __init__(
        self,
        address: BrokerAddress,
        *,
        status_topic: str | None = None,
        qos: int = 1,
    ):
        self.address: BrokerAddress = address
        self.status_topic: str | None = status_topic
        self.qos: int = qos
        self.client: mqtt.Client | None = None
        self.connected: bool = False
        self._ready: threading.Event = threading.Event()

    @classmethod
    def from_url(cls, url: str, *, status_topic: str | None = None) -> "MQTTBroadcaster":
        return cls(parse_mqtt_url(url), status_topic=status_topic)

    @override
    def connect(self, timeout: float = CONNECT_TIMEOUT_SECONDS) -> bool:
        host, port = self.address
        logger.info(f"Connecting to MQTT broker {host}:{port}")

        client = mqtt.Client(
            callback_api_version=CallbackAPIVersion.VERSION2,
            protocol=mqtt.MQTTv5,
        )
        client.on_connect = self._on_connect
        client.on_disconnect = self._on_disconnect
        if self.status_topic:
            client.will_set(self.status_topic, STATUS_OFFLINE, qos=self.qos, retain=True)
        _ = client.reconnect_delay_set(min_delay=1, max_delay=30)

        self._ready.clear()
        self.client = client
        try:
            _ = client.connect(host, port, keepalive=60, clean_start=True)
        except OSError as e:
            logger.warning(f"MQTT broker {host}:{port} unreachable: {e}")
            self.client = None
            return False
        _ = client.loop_start()

        if not self._ready.wait(timeout) or not self.connected:
            logger.warning(f"MQTT broker {host}:{port} did not accept the connection")
            self.disconnect()
            return False

        if self.status_topic:
            _ = self.publish(self.status_topic, STATUS_ONLINE, retain=True)
        return True

    @override
    def disconnect(self) -> None:
        client, self.client = self.client, None
        if client is None:
            return
        if self.connected and self.status_topic:
            _ = client.publish(self.status_topic, STATUS_OFFLINE, qos=self.qos, retain=True)
        _ = client.disconnect()
        _ = client.loop_stop()
        self.connected = False

    @override
    def publish(self, topic: str, payload: str, *, retain: bool = False) -> bool:
        if not self.connected or self.client is None:
            return False
        try:
            info = self.client.publish(topic, payload, qos=self.qos, retain=retain)
        except (ValueError, RuntimeError) as e:
            logger.error(f"Error publishing to {topic}: {e}")
            return False
        return info.rc == mqtt.MQTT_ERR_SUCCESS

    def _on_connect(
        self,
        _client: mqtt.Client,
        _userdata: object,
        _flags: ConnectFlags,
        reason_code: ReasonCode,
        _properties: Properties | None,
    ) -> None:
        self.connected = not reason_code.is_failure
        if self.connected:
            logger.info("MQTT connected")
        else:
            logger.warning(f"MQTT connection refused: {reason_code}")
        self._ready.set()

    def _on_disconnect(
        self,
        _client: mqtt.Client,
        _userdata: object,
        _flags: DisconnectFlags,
        reason_code: ReasonCode,
        _properties: Properties | None,
    ) -> None:
        self.connected = False
        logger.debug(f"MQTT disconnected: {reason_code}")


class NoOpBroadcaster(BroadcasterBase):
    """Accepts and discards everything; used when no broker is configured."""

    def __init__(self) -> None:
        self.connected: bool = True

    @override
    def connect(self) -> bool:
        return True

    @override
    def disconnect(self) -> None:
        pass

    @override
    def publish(self, topic: str, payload: str, *, retain: bool = False) -> bool:
        return True


class QueueEventPublisher:
    """Queue listener forwarding every event to a broadcaster as JSON.

    Publishing never raises into the queue; refused messages are counted in
    ``dropped``.
    """

    def __init__(self, broadcaster: BroadcasterBase, topic_prefix: str):
        self.broadcaster: BroadcasterBase = broadcaster
        self.topic_prefix: str = topic_prefix.rstrip("/")
        self.dropped: int = 0

    def topic_for(self, event: QueueEvent) -> str:
        if isinstance(event, QueueIdle):
            return f"{self.topic_prefix}/idle"
        return f"{self.topic_prefix}/{event.job_id}"

    def __call__(self, event: QueueEvent) -> None:
        if not self.broadcaster.publish(self.topic_for(event), event.model_dump_json()):
            self.dropped += 1
            logger.debug(f"MQTT publish dropped for {event.type} event")
