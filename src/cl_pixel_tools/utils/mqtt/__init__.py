from .mqtt_impl import (
    BroadcasterBase,
    BrokerAddress,
    InvalidMQTTURLException,
    MQTTBroadcaster,
    NoOpBroadcaster,
    QueueEventPublisher,
    UnsupportedMQTTURLException,
    parse_mqtt_url,
)
from .mqtt_instance import get_broadcaster, shutdown_broadcaster

__all__ = [
    "BroadcasterBase",
    "BrokerAddress",
    "InvalidMQTTURLException",
    "MQTTBroadcaster",
    "NoOpBroadcaster",
    "QueueEventPublisher",
    "UnsupportedMQTTURLException",
    "get_broadcaster",
    "parse_mqtt_url",
    "shutdown_broadcaster",
]
